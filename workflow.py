import enum

# start/end dates of a task that has not started/finished yet
UNSET_DATE = -1.0


class TaskState(enum.Enum):
    NOT_READY = "not_ready"
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"


class WorkflowFile:
    def __init__(self, file_id, size):
        self.file_id = file_id
        self.size = size

    def __repr__(self):
        return f"WorkflowFile({self.file_id!r}, {self.size})"


class Task:
    def __init__(self, task_id, flops, average_cpu=100.0, input_files=None, output_files=None):
        """
        A unit of computation of a workflow.

        :param task_id: unique, stable identifier (also the sort tie-break key)
        :param flops: computational demand
        :param average_cpu: average CPU utilization while running, in percent
        :param input_files: list of WorkflowFile read by the task
        :param output_files: list of WorkflowFile written by the task
        """
        self.task_id = task_id
        self.flops = flops
        self.average_cpu = average_cpu
        self.input_files = list(input_files or [])
        self.output_files = list(output_files or [])
        self.start_date = UNSET_DATE
        self.end_date = UNSET_DATE
        self.execution_host = None
        self.state = TaskState.READY
        self.parents = []
        self.children = []

    @property
    def is_running(self):
        return self.start_date != UNSET_DATE and self.end_date == UNSET_DATE

    def __repr__(self):
        return f"Task({self.task_id!r}, flops={self.flops}, cpu={self.average_cpu})"


class Workflow:
    def __init__(self, name="workflow"):
        self.name = name
        self.tasks = {}

    def add_task(self, task):
        if task.task_id in self.tasks:
            raise ValueError(f"Duplicate task id: {task.task_id}")
        self.tasks[task.task_id] = task
        return task

    def add_control_dependency(self, parent, child):
        parent.children.append(child)
        child.parents.append(parent)
        if parent.state != TaskState.COMPLETED:
            child.state = TaskState.NOT_READY

    def get_tasks(self):
        return list(self.tasks.values())

    def get_number_of_tasks(self):
        return len(self.tasks)

    def get_ready_tasks(self):
        return [t for t in self.tasks.values() if t.state == TaskState.READY]

    def is_done(self):
        return all(t.state == TaskState.COMPLETED for t in self.tasks.values())

    def task_completed(self, task, date):
        """Mark a task as completed and release the children whose parents are all done."""
        task.end_date = date
        task.state = TaskState.COMPLETED
        for child in task.children:
            if child.state == TaskState.NOT_READY and \
                    all(p.state == TaskState.COMPLETED for p in child.parents):
                child.state = TaskState.READY
