import pytest

from cost_model import TraditionalPowerModel
from datacenter import CloudComputeService
from job_scheduler import SchedulerConfigurationError, StandardJobCompletedEvent
from schedule import CostRankedAlgorithm, PoolReuseAlgorithm
from tests.conftest import make_hosts, make_tasks, power_off_all
from workflow import Task, TaskState, WorkflowFile


class BareMetalService:
    """A compute service without VM support."""


@pytest.fixture
def small_cloud():
    """Two 2-core workers, both powered off."""
    service = CloudComputeService(make_hosts(2, 2))
    power_off_all(service)
    return service


def add_tasks(workflow, tasks):
    for task in tasks:
        workflow.add_task(task)
    return tasks


def test_nothing_to_do(cloud_service, make_scheduler):
    scheduler = make_scheduler(PoolReuseAlgorithm(cloud_service))

    scheduler.schedule_tasks([], make_tasks(1))
    scheduler.schedule_tasks([cloud_service], [])
    assert scheduler.task_to_vm == {}
    assert len(cloud_service.vms) == 0


def test_more_than_one_compute_service_is_rejected(cloud_service, make_scheduler):
    scheduler = make_scheduler(PoolReuseAlgorithm(cloud_service))
    other = CloudComputeService(make_hosts(1, 1))

    with pytest.raises(SchedulerConfigurationError):
        scheduler.schedule_tasks([cloud_service, other], make_tasks(1))


def test_non_cloud_service_is_rejected(cloud_service, make_scheduler):
    scheduler = make_scheduler(PoolReuseAlgorithm(cloud_service))

    with pytest.raises(SchedulerConfigurationError):
        scheduler.schedule_tasks([BareMetalService()], make_tasks(1))


def test_scenario_cost_ranked_round_defers_last_task(small_cloud, workflow, make_scheduler):
    algorithm = CostRankedAlgorithm(small_cloud, TraditionalPowerModel(small_cloud))
    scheduler = make_scheduler(algorithm)
    tasks = add_tasks(workflow, make_tasks(5))

    scheduler.schedule_tasks([small_cloud], tasks)

    assert sorted(scheduler.task_to_vm) == ["t01", "t02", "t03", "t04"]
    assert len(set(scheduler.task_to_vm.values())) == 4
    assert scheduler.unscheduled_count == 1
    assert tasks[4].state == TaskState.READY
    assert algorithm.running_vms_per_host == {"worker1": 2, "worker2": 2}


def test_tasks_are_placed_by_decreasing_flops(small_cloud, workflow, make_scheduler):
    scheduler = make_scheduler(PoolReuseAlgorithm(small_cloud))
    tasks = add_tasks(workflow, [Task(f"t{i}", flops=f) for i, f in enumerate([1e9, 5e9, 3e9, 5e9, 2e9])])

    scheduler.schedule_tasks([small_cloud], tasks)

    assert sorted(scheduler.task_to_vm) == ["t1", "t2", "t3", "t4"]
    assert "t0" not in scheduler.task_to_vm


def test_submitted_task_runs_on_its_vm(env, small_cloud, workflow, make_scheduler, event_queue):
    scheduler = make_scheduler(PoolReuseAlgorithm(small_cloud))
    task = Task("t01", flops=2e9, input_files=[WorkflowFile("in", 10)], output_files=[WorkflowFile("out", 10)])
    workflow.add_task(task)

    scheduler.schedule_tasks([small_cloud], [task])
    vm_name = scheduler.task_to_vm["t01"]
    assert task.state == TaskState.RUNNING
    assert task.start_date == 0
    assert task.execution_host == "worker1"
    assert small_cloud.get_vm_compute_service(vm_name).get_total_num_idle_cores() == 0

    env.run()
    assert task.end_date == 2.0
    assert task.state == TaskState.COMPLETED
    event = event_queue.items[0]
    assert isinstance(event, StandardJobCompletedEvent)
    job = event.standard_job
    assert job.tasks == [task]
    assert set(f.file_id for f in job.file_locations) == {"in", "out"}
    assert all(loc.storage_service.name == "data_server" for loc in job.file_locations.values())


def test_completion_shuts_down_idle_vm_and_host(env, small_cloud, workflow, make_scheduler):
    algorithm = CostRankedAlgorithm(small_cloud, TraditionalPowerModel(small_cloud))
    scheduler = make_scheduler(algorithm)
    task, = add_tasks(workflow, make_tasks(1))

    scheduler.schedule_tasks([small_cloud], [task])
    vm_name = scheduler.task_to_vm["t01"]
    env.run()
    scheduler.notify_task_completion([small_cloud], task)

    assert small_cloud.is_vm_down(vm_name)
    assert algorithm.running_vms_per_host == {"worker1": 0}
    assert not small_cloud.is_host_on("worker1")
    assert scheduler.task_to_vm == {}


def test_completion_keeps_vm_for_deferred_task(env, small_cloud, workflow, make_scheduler):
    algorithm = CostRankedAlgorithm(small_cloud, TraditionalPowerModel(small_cloud))
    scheduler = make_scheduler(algorithm)
    tasks = add_tasks(workflow, make_tasks(5))

    scheduler.schedule_tasks([small_cloud], tasks)
    env.run()
    scheduler.notify_task_completion([small_cloud], tasks[0])
    kept = [vm for vm in small_cloud.vms if small_cloud.is_vm_running(vm)]
    assert len(kept) == 4
    assert scheduler.unscheduled_count == 0

    scheduler.notify_task_completion([small_cloud], tasks[1])
    assert len([vm for vm in small_cloud.vms if small_cloud.is_vm_running(vm)]) == 3


def test_completion_of_unbound_task_is_fatal(small_cloud, make_scheduler):
    scheduler = make_scheduler(PoolReuseAlgorithm(small_cloud))

    with pytest.raises(RuntimeError):
        scheduler.notify_task_completion([small_cloud], Task("ghost", flops=1))


def test_task_goes_through_every_lifecycle_state(env, small_cloud, workflow, make_scheduler):
    scheduler = make_scheduler(PoolReuseAlgorithm(small_cloud))
    parent, child = add_tasks(workflow, make_tasks(2))
    workflow.add_control_dependency(parent, child)

    seen = [child.state]
    scheduler.schedule_tasks([small_cloud], workflow.get_ready_tasks())
    env.run()
    seen.append(child.state)
    scheduler.schedule_tasks([small_cloud], workflow.get_ready_tasks())
    seen.append(child.state)
    env.run()
    seen.append(child.state)

    assert seen == list(TaskState)
