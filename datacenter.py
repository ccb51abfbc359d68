# datacenter.py

import enum
import itertools
import logging

logger = logging.getLogger(__name__)


class Host:
    def __init__(self, host_id, num_cores, ram_capacity=16e9, power_idle=100.0, power_max=250.0, speed=1e9):
        """
        A physical machine of the platform.

        :param host_id: Unique hostname
        :param num_cores: Number of cores
        :param ram_capacity: RAM in bytes
        :param power_idle: Power draw (W) when on and idle
        :param power_max: Power draw (W) when on and fully loaded
        :param speed: Per-core speed in flops/s
        """
        if num_cores < 1:
            raise ValueError(f"Host {host_id} must have at least one core (got {num_cores})")
        self.host_id = host_id
        self.num_cores = num_cores
        self.ram_capacity = ram_capacity
        self.power_idle = power_idle
        self.power_max = power_max
        self.speed = speed
        self.vms = []
        self.active = True

    @property
    def name(self):
        return self.host_id

    def power_on(self):
        self.active = True
        logger.info("Host %s is now ON.", self.host_id)

    def power_off(self):
        self.active = False
        logger.info("Host %s is now OFF.", self.host_id)

    def allocate_vm(self, vm):
        self.vms.append(vm)
        logger.debug("VM %s allocated to Host %s.", vm.vm_id, self.host_id)

    def deallocate_vm(self, vm_id):
        for vm in self.vms:
            if vm.vm_id == vm_id:
                self.vms.remove(vm)
                logger.debug("VM %s deallocated from Host %s.", vm_id, self.host_id)
                return
        raise RuntimeError(f"VM {vm_id} not found on Host {self.host_id}")

    def used_cores(self):
        return sum(vm.num_cores for vm in self.vms)

    def used_ram(self):
        return sum(vm.ram for vm in self.vms)

    def remaining_cores(self):
        return self.num_cores - self.used_cores()

    def can_fit(self, num_cores, ram):
        return (self.used_cores() + num_cores <= self.num_cores and
                self.used_ram() + ram <= self.ram_capacity)

    def can_host_vm(self, vm):
        return self.can_fit(vm.num_cores, vm.ram)

    def num_vm_slots(self, num_cores, ram):
        """Number of additional VMs of the given shape the host can still take."""
        return max(min((self.num_cores - self.used_cores()) // num_cores,
                       int((self.ram_capacity - self.used_ram()) // ram)), 0)

    def __str__(self):
        return (f"Host {self.host_id} | Cores: {self.num_cores} x {self.speed:.0f} flops/s, "
                f"Power: {self.power_idle}-{self.power_max} W, {'ON' if self.active else 'OFF'}")


class VMState(enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    DOWN = "down"


class VM:
    def __init__(self, vm_id, num_cores, ram, physical_host=None):
        """
        VM represents a virtual machine created on the cloud service. While running
        it is bound to one host and acts as the compute handle jobs are submitted to.

        :param vm_id: Unique identifier
        :param num_cores: Number of cores
        :param ram: RAM in bytes
        :param physical_host: Hostname the VM is pinned to, or None to let the cloud place it
        """
        self.vm_id = vm_id
        self.num_cores = num_cores
        self.ram = ram
        self.physical_host = physical_host
        self.state = VMState.CREATED
        self.host = None
        self.running_tasks = []

    def get_total_num_cores(self):
        return self.num_cores

    def get_total_num_idle_cores(self):
        if self.state != VMState.RUNNING:
            return 0
        return self.num_cores - len(self.running_tasks)

    def run_task(self, task):
        if self.get_total_num_idle_cores() < 1:
            raise RuntimeError(f"VM {self.vm_id} has no idle core for task {task.task_id}")
        self.running_tasks.append(task)

    def release_task(self, task):
        self.running_tasks.remove(task)

    def __str__(self):
        host = self.host.host_id if self.host else "-"
        return (f"VM {self.vm_id} | {self.state.value} on {host} | Cores: {self.num_cores}, "
                f"Running tasks: {len(self.running_tasks)}")


class CloudComputeService:
    """
    Elastic compute service: VMs are created, started and shut down on a set of
    execution hosts whose power state can be toggled.
    """
    supports_vms = True

    def __init__(self, hosts, name="cloud_service"):
        if not hosts:
            raise ValueError("A cloud service needs at least one execution host")
        self.name = name
        self.hosts = {h.host_id: h for h in hosts}
        self.vms = {}
        self._vm_ids = itertools.count(1)

    # Hosts

    def get_execution_hosts(self):
        return list(self.hosts)

    def get_host(self, hostname):
        try:
            return self.hosts[hostname]
        except KeyError:
            raise ValueError(f"Unknown host {hostname}") from None

    def is_host_on(self, hostname):
        return self.get_host(hostname).active

    def turn_on_host(self, hostname):
        self.get_host(hostname).power_on()

    def turn_off_host(self, hostname):
        host = self.get_host(hostname)
        if host.vms:
            raise RuntimeError(f"Cannot turn off Host {hostname}: {len(host.vms)} VM(s) still running")
        host.power_off()

    def get_per_host_num_cores(self):
        return {name: h.num_cores for name, h in self.hosts.items()}

    def get_per_host_num_idle_cores(self):
        return {name: h.remaining_cores() for name, h in self.hosts.items()}

    def get_total_num_idle_cores(self):
        return sum(self.get_per_host_num_idle_cores().values())

    def get_per_host_num_vm_slots(self, num_cores, ram):
        """Per host, how many more VMs of this shape fit in its idle cores and free RAM."""
        return {name: h.num_vm_slots(num_cores, ram) for name, h in self.hosts.items()}

    def can_start_vm(self, num_cores, ram, hostname=None):
        """
        Whether a VM of this shape can be started right now, whatever the host power state.

        :param hostname: restrict the check to this host, otherwise any host will do
        """
        if hostname is not None:
            return self.get_host(hostname).can_fit(num_cores, ram)
        return any(h.can_fit(num_cores, ram) for h in self.hosts.values())

    # VMs

    def create_vm(self, num_cores, ram, physical_host=None):
        if physical_host is not None:
            self.get_host(physical_host)
        vm_id = f"{self.name}_vm_{next(self._vm_ids)}"
        self.vms[vm_id] = VM(vm_id, num_cores, ram, physical_host)
        logger.info("Created VM %s (%d cores)%s", vm_id, num_cores,
                    f" pinned to {physical_host}" if physical_host else "")
        return vm_id

    def get_vm(self, vm_id):
        try:
            return self.vms[vm_id]
        except KeyError:
            raise ValueError(f"Unknown VM {vm_id}") from None

    def start_vm(self, vm_id):
        vm = self.get_vm(vm_id)
        if vm.state == VMState.RUNNING:
            raise RuntimeError(f"VM {vm_id} is already running")
        host = self._find_host(vm)
        host.allocate_vm(vm)
        vm.host = host
        vm.state = VMState.RUNNING
        logger.info("Started VM %s on Host %s", vm_id, host.host_id)
        return vm

    def shutdown_vm(self, vm_id):
        vm = self.get_vm(vm_id)
        if vm.state != VMState.RUNNING:
            raise RuntimeError(f"Cannot shut down VM {vm_id}: it is {vm.state.value}")
        if vm.running_tasks:
            raise RuntimeError(f"Cannot shut down VM {vm_id}: {len(vm.running_tasks)} task(s) running")
        vm.host.deallocate_vm(vm_id)
        vm.host = None
        vm.state = VMState.DOWN
        logger.info("Shut down VM %s", vm_id)

    def destroy_vm(self, vm_id):
        vm = self.get_vm(vm_id)
        if vm.state == VMState.RUNNING:
            raise RuntimeError(f"Cannot destroy VM {vm_id}: it is still running")
        del self.vms[vm_id]
        logger.info("Destroyed VM %s", vm_id)

    def is_vm_running(self, vm_id):
        return self.get_vm(vm_id).state == VMState.RUNNING

    def is_vm_down(self, vm_id):
        return self.get_vm(vm_id).state == VMState.DOWN

    def get_vm_physical_hostname(self, vm_id):
        vm = self.get_vm(vm_id)
        if vm.host is None:
            raise RuntimeError(f"VM {vm_id} is not bound to a host")
        return vm.host.host_id

    def get_vm_compute_service(self, vm_id):
        return self.get_vm(vm_id)

    def _find_host(self, vm):
        if vm.physical_host is not None:
            host = self.hosts[vm.physical_host]
            if not host.active:
                raise RuntimeError(f"Cannot start VM {vm.vm_id}: Host {host.host_id} is off")
            if not host.can_host_vm(vm):
                raise RuntimeError(f"Cannot start VM {vm.vm_id}: Host {host.host_id} is full")
            return host

        # best fit among powered-on hosts
        candidates = [h for h in self.hosts.values() if h.active and h.can_host_vm(vm)]
        if candidates:
            return min(candidates, key=lambda h: h.remaining_cores() - vm.num_cores)

        for host in self.hosts.values():
            if not host.active and host.can_host_vm(vm):
                host.power_on()
                return host
        raise RuntimeError(f"Cannot start VM {vm.vm_id}: no host has room for "
                           f"{vm.num_cores} core(s) and {vm.ram:.0f} B of RAM")


class StorageService:
    def __init__(self, name, mount_point="/"):
        self.name = name
        self.mount_point = mount_point


class FileLocation:
    def __init__(self, storage_service, path):
        self.storage_service = storage_service
        self.path = path

    @classmethod
    def location(cls, storage_service):
        return cls(storage_service, storage_service.mount_point)

    def __repr__(self):
        return f"FileLocation({self.storage_service.name}:{self.path})"
