"""
A workflow management system that greedily hands ready tasks to the job
scheduler, one scheduling round per simulation event.
"""

import logging

from job_scheduler import StandardJobCompletedEvent, StandardJobFailedEvent

logger = logging.getLogger(__name__)


class GreedyWMS:
    def __init__(self, env, workflow, job_scheduler, compute_services, event_queue, power_meters=()):
        self.env = env
        self.workflow = workflow
        self.job_scheduler = job_scheduler
        self.compute_services = compute_services
        self.event_queue = event_queue
        self.power_meters = list(power_meters)
        self.outstanding_jobs = 0
        self.process = None

    def start(self):
        self.process = self.env.process(self.run())
        return self.process

    def run(self):
        logger.info("About to execute a workflow with %d tasks", self.workflow.get_number_of_tasks())

        for meter in self.power_meters:
            meter.start()

        # all workers start powered off
        for compute_service in self.compute_services:
            for hostname in compute_service.get_execution_hosts():
                if compute_service.is_host_on(hostname):
                    compute_service.turn_off_host(hostname)

        # tasks finishing at the same date complete before their events are processed
        while not self.workflow.is_done() or self.outstanding_jobs > 0:
            ready_tasks = self.workflow.get_ready_tasks()

            logger.info("Scheduling tasks...")
            self.job_scheduler.schedule_tasks(self.compute_services, ready_tasks)
            self.outstanding_jobs += sum(1 for t in ready_tasks if t.task_id in self.job_scheduler.task_to_vm)

            if self.outstanding_jobs == 0:
                raise RuntimeError(f"Cannot make progress: {len(ready_tasks)} ready task(s) "
                                   f"but no resource to run them")

            logger.info("Waiting for next event")
            event = yield self.event_queue.get()
            self.process_event(event)

        logger.info("Workflow execution complete")
        for meter in self.power_meters:
            meter.stop()

    def process_event(self, event):
        if isinstance(event, StandardJobCompletedEvent):
            self.outstanding_jobs -= 1
            for task in event.standard_job.tasks:
                logger.info("Notified that a standard job has completed task %s", task.task_id)
                self.job_scheduler.notify_task_completion(self.compute_services, task)
        elif isinstance(event, StandardJobFailedEvent):
            tasks = ", ".join(t.task_id for t in event.standard_job.tasks)
            raise RuntimeError(f"Standard job {event.standard_job.job_id} failed "
                               f"({event.failure_cause}), tasks: {tasks}")
        else:
            raise RuntimeError(f"Unexpected workflow execution event: {event!r}")
