# Helper.py

import random

from datacenter import Host
from workflow import Task, Workflow, WorkflowFile

# ====================
# Host Configuration
# ====================
HOST_TYPES = 2
HOST_PES = [12, 12]
HOST_SPEED = [1e9, 1e9]        # flops/s per core
HOST_RAM = [32e9, 32e9]        # bytes
HOST_Power_Idle = [98, 98]     # W
HOST_Power_Full = [132, 132]   # W


def create_host_list(num_hosts, prefix="worker"):
    hosts = []
    for i in range(num_hosts):
        type_id = i % HOST_TYPES

        host = Host(
            host_id=f"{prefix}{i + 1}",
            num_cores=HOST_PES[type_id],
            ram_capacity=HOST_RAM[type_id],
            power_idle=HOST_Power_Idle[type_id],
            power_max=HOST_Power_Full[type_id],
            speed=HOST_SPEED[type_id],
        )
        hosts.append(host)
    return hosts


# ====================
# Task Configuration
# ====================
TASK_FLOPS = [60e9, 120e9, 300e9, 600e9]
TASK_AVG_CPU = [45.0, 70.0, 95.0, 100.0]
FILE_SIZE = [1e6, 10e6, 100e6]


def create_workflow(num_tasks, num_levels=1, seed=None, name="workflow"):
    """
    Build a random layered workflow: every task of a level depends on every task
    of the previous level.

    :param num_tasks: total number of tasks
    :param num_levels: number of levels the tasks are spread over
    :param seed: random seed, for reproducible workflows
    """
    rng = random.Random(seed)
    workflow = Workflow(name)
    width = max(num_tasks // num_levels, 1)
    previous_level = []
    level = []

    for i in range(num_tasks):
        task = Task(
            task_id=f"task_{i:04d}",
            flops=rng.choice(TASK_FLOPS),
            average_cpu=rng.choice(TASK_AVG_CPU),
            input_files=[WorkflowFile(f"task_{i:04d}_in", rng.choice(FILE_SIZE))],
            output_files=[WorkflowFile(f"task_{i:04d}_out", rng.choice(FILE_SIZE))],
        )
        workflow.add_task(task)
        for parent in previous_level:
            workflow.add_control_dependency(parent, task)
        level.append(task)
        if len(level) == width and i != num_tasks - 1:
            previous_level, level = level, []

    return workflow
