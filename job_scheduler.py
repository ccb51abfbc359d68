import itertools
import logging

from datacenter import FileLocation
from schedule import flops_sort_key
from workflow import TaskState

logger = logging.getLogger(__name__)


class SchedulerConfigurationError(RuntimeError):
    """The scheduler was handed compute services it cannot work with."""


class StandardJobCompletedEvent:
    def __init__(self, standard_job):
        self.standard_job = standard_job


class StandardJobFailedEvent:
    def __init__(self, standard_job, failure_cause):
        self.standard_job = standard_job
        self.failure_cause = failure_cause


class StandardJob:
    def __init__(self, job_id, tasks, file_locations):
        self.job_id = job_id
        self.tasks = tasks
        self.file_locations = file_locations


class JobManager:
    """
    Creates jobs and runs them on VMs as simpy processes. Completion events are
    posted to ``event_queue`` (a ``simpy.Store``) in completion order.
    """

    def __init__(self, env, workflow, event_queue):
        self.env = env
        self.workflow = workflow
        self.event_queue = event_queue
        self._job_ids = itertools.count(1)

    def create_standard_job(self, task, file_locations):
        return StandardJob(f"standard_job_{next(self._job_ids)}", [task], file_locations)

    def submit_job(self, job, vm):
        # claim the cores now so later placements in the same round see them busy
        for task in job.tasks:
            vm.run_task(task)
            task.state = TaskState.RUNNING
            task.start_date = self.env.now
            task.execution_host = vm.host.host_id
        self.env.process(self._execute(job, vm))

    def _execute(self, job, vm):
        for task in job.tasks:
            yield self.env.timeout(task.flops / vm.host.speed)
            vm.release_task(task)
            self.workflow.task_completed(task, self.env.now)
        yield self.event_queue.put(StandardJobCompletedEvent(job))


class EnergyAwareJobScheduler:
    """
    Submits ready tasks to the VMs picked by a scheduling algorithm, and shuts
    down VMs that become idle while no task is waiting for them.
    """

    def __init__(self, storage_service, scheduling_algorithm, job_manager):
        """
        :param storage_service: default storage service for every task file
        :param scheduling_algorithm: SchedulingAlgorithm instance, owned by this scheduler
        :param job_manager: JobManager used to create and submit jobs
        """
        self.default_storage_service = storage_service
        self.scheduling_algorithm = scheduling_algorithm
        self.job_manager = job_manager
        self.task_to_vm = {}
        self.unscheduled_count = 0

    def schedule_tasks(self, compute_services, tasks):
        if not compute_services or not tasks:
            return
        cloud_service = self._get_cloud_service(compute_services)

        logger.info("There are %d ready tasks to schedule", len(tasks))

        sorted_tasks = self.scheduling_algorithm.sort_tasks(sorted(tasks, key=flops_sort_key))

        unscheduled = 0
        for task in sorted_tasks:
            vm_name = self.scheduling_algorithm.schedule_task(task)
            if vm_name is None:
                unscheduled += 1
                continue

            # finding the file locations
            file_locations = {}
            for f in task.input_files + task.output_files:
                file_locations[f] = FileLocation.location(self.default_storage_service)

            job = self.job_manager.create_standard_job(task, file_locations)
            logger.info("Scheduling task: %s on %s", task.task_id, vm_name)
            self.job_manager.submit_job(job, cloud_service.get_vm_compute_service(vm_name))
            self.task_to_vm[task.task_id] = vm_name

        self.unscheduled_count = unscheduled
        if unscheduled:
            logger.info("%d task(s) deferred to the next round", unscheduled)

    def notify_task_completion(self, compute_services, task):
        """
        Release the task's VM binding. The VM is shut down once fully idle, unless
        tasks deferred in the last round are still waiting for a core, in which
        case the freed core is kept for one of them.
        """
        cloud_service = self._get_cloud_service(compute_services)
        try:
            vm_name = self.task_to_vm.pop(task.task_id)
        except KeyError:
            raise RuntimeError(f"Completed task {task.task_id} is not bound to any VM") from None

        if self.unscheduled_count > 0:
            self.unscheduled_count -= 1
            return

        vm = cloud_service.get_vm_compute_service(vm_name)
        if vm.get_total_num_cores() == vm.get_total_num_idle_cores():
            hostname = cloud_service.get_vm_physical_hostname(vm_name)
            cloud_service.shutdown_vm(vm_name)
            self.scheduling_algorithm.notify_vm_shutdown(vm_name, hostname)

    def _get_cloud_service(self, compute_services):
        if len(compute_services) > 1:
            raise SchedulerConfigurationError(
                "This Energy-Aware Cloud Scheduler can only handle a single compute service")
        cloud_service = next(iter(compute_services))
        if not getattr(cloud_service, "supports_vms", False):
            raise SchedulerConfigurationError(
                "This Energy-Aware Cloud Scheduler can only handle a cloud service")
        return cloud_service
