import pytest
import simpy

from datacenter import CloudComputeService, Host, StorageService
from job_scheduler import EnergyAwareJobScheduler, JobManager
from workflow import Task, Workflow


def make_hosts(num_hosts, num_cores, power_idle=100.0, power_max=200.0):
    return [Host(f"worker{i + 1}", num_cores=num_cores, power_idle=power_idle, power_max=power_max)
            for i in range(num_hosts)]


def make_tasks(num_tasks, flops=1e9, average_cpu=100.0):
    return [Task(f"t{i + 1:02d}", flops=flops, average_cpu=average_cpu) for i in range(num_tasks)]


def power_off_all(cloud_service):
    for hostname in cloud_service.get_execution_hosts():
        cloud_service.turn_off_host(hostname)


@pytest.fixture
def env():
    return simpy.Environment()


@pytest.fixture
def cloud_service():
    """Two 4-core workers, both powered off."""
    service = CloudComputeService(make_hosts(2, 4))
    power_off_all(service)
    return service


@pytest.fixture
def workflow():
    return Workflow("test")


@pytest.fixture
def event_queue(env):
    return simpy.Store(env)


@pytest.fixture
def job_manager(env, workflow, event_queue):
    return JobManager(env, workflow, event_queue)


@pytest.fixture
def make_scheduler(job_manager):
    def _make(algorithm):
        return EnergyAwareJobScheduler(StorageService("data_server"), algorithm, job_manager)
    return _make
