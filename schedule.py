# schedule.py

import logging
import math

from config import BALANCE_BATCH_CAP, BALANCE_HOST_CORES, VM_NUM_CORES, VM_RAM_BYTES
from cost_model import TraditionalPowerModel

logger = logging.getLogger(__name__)


def flops_sort_key(task):
    """Descending computational demand, ties broken by task id."""
    return -task.flops, task.task_id


def cpu_sort_key(task):
    """Descending average CPU utilization, ties broken by task id."""
    return -task.average_cpu, task.task_id


class SchedulingAlgorithm:
    """
    Decides, for each ready task, which VM of the cloud service runs it.

    An algorithm owns the VM/host bookkeeping of the VMs it started:
    ``vm_to_host`` (VM -> hostname) and ``running_vms_per_host``
    (hostname -> number of running VMs it placed there). A host is powered
    off as soon as its count drops back to zero.
    """

    def __init__(self, cloud_service, cost_model=None, vm_num_cores=VM_NUM_CORES, vm_ram=VM_RAM_BYTES):
        self.cloud_service = cloud_service
        self.cost_model = cost_model
        self.vm_num_cores = vm_num_cores
        self.vm_ram = vm_ram
        self.vm_to_host = {}
        self.running_vms_per_host = {}

    def sort_tasks(self, tasks):
        return sorted(tasks, key=flops_sort_key)

    def schedule_task(self, task):
        """
        :param task: a ready task
        :return: name of a started VM with an idle core, or None if no resource is available now
        """
        raise NotImplementedError

    def notify_vm_shutdown(self, vm_name, hostname):
        if vm_name not in self.vm_to_host:
            raise RuntimeError(f"Shutdown of unknown VM {vm_name}")
        if hostname not in self.running_vms_per_host:
            raise RuntimeError(f"Shutdown of VM {vm_name} on unknown host {hostname}")
        if self.vm_to_host[vm_name] != hostname:
            raise RuntimeError(f"VM {vm_name} runs on Host {self.vm_to_host[vm_name]}, not on {hostname}")
        self.running_vms_per_host[hostname] -= 1
        if self.running_vms_per_host[hostname] == 0:
            logger.info("No VM left on Host %s, turning it off", hostname)
            self.cloud_service.turn_off_host(hostname)

    def _start_vm(self, vm_name):
        self.cloud_service.start_vm(vm_name)
        hostname = self.cloud_service.get_vm_physical_hostname(vm_name)
        self.vm_to_host[vm_name] = hostname
        self.running_vms_per_host[hostname] = self.running_vms_per_host.get(hostname, 0) + 1
        return hostname

    def _has_idle_core(self, vm_name):
        return self.cloud_service.is_vm_running(vm_name) and \
            self.cloud_service.get_vm_compute_service(vm_name).get_total_num_idle_cores() > 0

    def _has_idle_capacity(self, hostname=None):
        return self.cloud_service.can_start_vm(self.vm_num_cores, self.vm_ram, hostname)


class PoolReuseAlgorithm(SchedulingAlgorithm):
    """Reuse any running VM of the pool with an idle core, otherwise grow the pool."""

    def __init__(self, cloud_service, cost_model=None, **kwargs):
        super().__init__(cloud_service, cost_model, **kwargs)
        self.vms_pool = []

    def schedule_task(self, task):
        for vm_name in self.vms_pool:
            if self._has_idle_core(vm_name):
                return vm_name

        if not self._has_idle_capacity():
            return None
        return self._create_pool_vm()

    def _create_pool_vm(self, physical_host=None):
        vm_name = self.cloud_service.create_vm(self.vm_num_cores, self.vm_ram, physical_host)
        self._start_vm(vm_name)
        self.vms_pool.append(vm_name)
        return vm_name


class CostRankedAlgorithm(PoolReuseAlgorithm):
    """
    Rank the running-and-idle and down VMs of the pool with the cost model and
    take the cheapest one (first seen on ties). A new VM is created only when
    there is no candidate at all. One extra host is kept powered on ahead of
    demand whenever all the hosts in use are full.
    """

    def schedule_task(self, task):
        candidate_vms = []
        for vm_name in self.vms_pool:
            if self._has_idle_core(vm_name):
                candidate_vms.append(vm_name)
            elif self.cloud_service.is_vm_down(vm_name) and self._has_idle_capacity():
                candidate_vms.append(vm_name)

        vm_name = None
        min_cost = math.inf
        for candidate in candidate_vms:
            cost = self.cost_model.estimate_cost(task, candidate, self.running_vms_per_host)
            logger.debug("Cost of %s on %s: %s", task.task_id, candidate, cost)
            if cost < min_cost:
                min_cost = cost
                vm_name = candidate

        self._power_on_spare_host()

        if vm_name is not None and self.cloud_service.is_vm_down(vm_name):
            self._start_vm(vm_name)
            return vm_name

        if vm_name is None and self._has_idle_capacity():
            vm_name = self._create_pool_vm()
        return vm_name

    def _power_on_spare_host(self):
        num_cores = self.cloud_service.get_per_host_num_cores()
        for hostname, running_vms in self.running_vms_per_host.items():
            if self.cloud_service.is_host_on(hostname) and running_vms < num_cores[hostname]:
                return

        for hostname in self.cloud_service.get_execution_hosts():
            if not self.cloud_service.is_host_on(hostname):
                logger.info("No spare core on running hosts, turning on Host %s", hostname)
                self.cloud_service.turn_on_host(hostname)
                return


class IdleCapacityFirstAlgorithm(CostRankedAlgorithm):
    """
    Take any running VM with an idle core; otherwise power on the first host
    that is off and pin a new VM there. Shut down VMs are destroyed.
    """

    def schedule_task(self, task):
        for vm_name in self.vm_to_host:
            if self._has_idle_core(vm_name):
                return vm_name

        if not self._has_idle_capacity():
            return None

        hostname = self._find_host()
        if hostname is None:
            return None
        if not self.cloud_service.is_host_on(hostname):
            self.cloud_service.turn_on_host(hostname)
        return self._create_pool_vm(physical_host=hostname)

    def notify_vm_shutdown(self, vm_name, hostname):
        super().notify_vm_shutdown(vm_name, hostname)
        # never restarted by this policy
        del self.vm_to_host[vm_name]
        self.vms_pool.remove(vm_name)
        self.cloud_service.destroy_vm(vm_name)

    def _find_host(self):
        hostnames = self.cloud_service.get_execution_hosts()
        for hostname in hostnames:
            if not self.cloud_service.is_host_on(hostname) and self._has_idle_capacity(hostname):
                return hostname

        # no host left to power on: pin to the first one with room
        for hostname in hostnames:
            if self._has_idle_capacity(hostname):
                return hostname
        return None


class HostAffinityAlgorithm(SchedulingAlgorithm):
    """
    Plan a host for every task of the ready batch, then only ever place a task
    on a VM of its planned host.

    Tasks are planned by decreasing CPU utilization. A task first claims a host
    through a VM that can take it (running with an idle core, or down), each VM
    being claimed at most once per core it has free; otherwise it goes to the
    host with the fewest VM slots left, a slot being room for one more VM in
    both idle cores and free RAM.
    """

    def __init__(self, cloud_service, cost_model=None, **kwargs):
        super().__init__(cloud_service, cost_model, **kwargs)
        self.task_to_host = {}

    def sort_tasks(self, tasks):
        sorted_tasks = sorted(tasks, key=cpu_sort_key)

        self.task_to_host = {}
        vm_slots = self.cloud_service.get_per_host_num_vm_slots(self.vm_num_cores, self.vm_ram)
        claimed_cores = {}

        for task in sorted_tasks:
            candidate_host = None

            # look for existing VMs
            for vm_name, hostname in self.vm_to_host.items():
                claimed = claimed_cores.get(vm_name, 0)
                if self._has_idle_core(vm_name):
                    free_cores = self.cloud_service.get_vm_compute_service(vm_name).get_total_num_idle_cores()
                elif self.cloud_service.is_vm_down(vm_name) and (claimed or vm_slots[hostname] > 0):
                    free_cores = self.vm_num_cores
                    if not claimed:
                        vm_slots[hostname] -= 1
                else:
                    continue
                if claimed >= free_cores:
                    continue
                claimed_cores[vm_name] = claimed + 1
                candidate_host = hostname
                break

            if candidate_host is None:
                hosts_with_room = [h for h, slots in vm_slots.items() if slots > 0]
                if not hosts_with_room:
                    break
                candidate_host = min(hosts_with_room, key=lambda h: vm_slots[h])
                vm_slots[candidate_host] -= 1

            logger.debug("Planned task %s on Host %s", task.task_id, candidate_host)
            self.task_to_host[task.task_id] = candidate_host

        return sorted_tasks

    def schedule_task(self, task):
        hostname = self.task_to_host.get(task.task_id)
        if hostname is None:
            return None

        if not self.cloud_service.is_host_on(hostname):
            self.cloud_service.turn_on_host(hostname)

        # look for a running, idle VM
        vm_name = None
        for candidate, candidate_host in self.vm_to_host.items():
            if candidate_host != hostname:
                continue
            if self._has_idle_core(candidate):
                return candidate
            if vm_name is None and self.cloud_service.is_vm_down(candidate):
                vm_name = candidate

        if not self._has_idle_capacity(hostname):
            return None
        if vm_name is None:
            vm_name = self.cloud_service.create_vm(self.vm_num_cores, self.vm_ram, hostname)

        self._start_vm(vm_name)
        return vm_name


class BalancedHostAffinityAlgorithm(HostAffinityAlgorithm):
    """
    Host affinity where the plan spreads the batch round-robin over the hosts.

    Up to ``batch_cap`` tasks are planned assuming every host has ``host_cores``
    cores: ``n // host_cores`` hosts receive a full share and one more host the
    remaining ``n % host_cores`` tasks. The returned order lists the tasks host
    by host; tasks left out of the plan come last and are not placed this round.
    """

    def __init__(self, cloud_service, cost_model=None, host_cores=BALANCE_HOST_CORES,
                 batch_cap=BALANCE_BATCH_CAP, **kwargs):
        super().__init__(cloud_service, cost_model, **kwargs)
        self.host_cores = host_cores
        self.batch_cap = batch_cap

    def sort_tasks(self, tasks):
        sorted_tasks = sorted(tasks, key=cpu_sort_key)
        batch = sorted_tasks[:self.batch_cap]

        num_full_hosts, tasks_in_unfilled_host = divmod(len(batch), self.host_cores)
        shares = [self.host_cores] * num_full_hosts
        if tasks_in_unfilled_host:
            shares.append(tasks_in_unfilled_host)
        hosts = self.cloud_service.get_execution_hosts()
        shares = shares[:len(hosts)]

        self.task_to_host = {}
        planned = [[] for _ in shares]
        capacity = sum(shares)
        host_index = 0

        for task in batch[:capacity]:
            while len(planned[host_index]) >= shares[host_index]:
                host_index = (host_index + 1) % len(shares)
            planned[host_index].append(task)
            self.task_to_host[task.task_id] = hosts[host_index]
            host_index = (host_index + 1) % len(shares)

        ordered = [task for host_tasks in planned for task in host_tasks]
        return ordered + [task for task in sorted_tasks if task.task_id not in self.task_to_host]


ALGORITHMS = {
    "pool_reuse": PoolReuseAlgorithm,
    "cost_ranked": CostRankedAlgorithm,
    "host_affinity": HostAffinityAlgorithm,
    "balanced": BalancedHostAffinityAlgorithm,
    "idle_first": IdleCapacityFirstAlgorithm,
}


def create_scheduling_algorithm(policy, cloud_service, cost_model=None, **kwargs):
    """
    Build the scheduling algorithm for a policy name.

    :param policy: one of ``config.POLICIES``
    :param cloud_service: the CloudComputeService the algorithm places VMs on
    :param cost_model: cost model used to rank VMs, TraditionalPowerModel by default
    :param kwargs: extra arguments of the algorithm class (e.g. ``host_cores`` for "balanced")
    """
    try:
        algorithm_cls = ALGORITHMS[policy]
    except KeyError:
        raise ValueError(f"Unknown scheduling policy: {policy}") from None
    if cost_model is None:
        cost_model = TraditionalPowerModel(cloud_service)
    return algorithm_cls(cloud_service, cost_model, **kwargs)
