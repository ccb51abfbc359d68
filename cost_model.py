class CostModel:
    """
    Ranks a candidate VM for a task. Lower cost is preferred; values carry no unit.
    """

    def __init__(self, cloud_service):
        self.cloud_service = cloud_service

    def estimate_cost(self, task, vm_name, running_vms_per_host):
        """
        :param task: the task to place
        :param vm_name: candidate VM
        :param running_vms_per_host: occupancy map, hostname -> number of running VMs
        :return: the cost of running the task on the VM
        """
        raise NotImplementedError


class TraditionalPowerModel(CostModel):
    """
    Occupancy-based cost: a running VM is free, filling a partially occupied
    host is cheap, and anything that needs an idle or saturated host is expensive.
    """
    RUNNING_VM_COST = 0
    PARTIAL_HOST_COST = 1
    NEW_HOST_COST = 2

    def estimate_cost(self, task, vm_name, running_vms_per_host):
        if self.cloud_service.is_vm_running(vm_name):
            return self.RUNNING_VM_COST

        num_cores = self.cloud_service.get_per_host_num_cores()
        for host in self.cloud_service.get_execution_hosts():
            running = running_vms_per_host.get(host, 0)
            if 0 < running < num_cores[host]:
                return self.PARTIAL_HOST_COST
        return self.NEW_HOST_COST
