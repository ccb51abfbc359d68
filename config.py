from dataclasses import dataclass

# VM shape used by every scheduling algorithm
VM_NUM_CORES = 1
VM_RAM_BYTES = 1000000000

# Balanced batch placement
BALANCE_HOST_CORES = 12  # assumed cores per execution host
BALANCE_BATCH_CAP = 48   # max tasks planned per round

# Power meter
DEFAULT_MEASUREMENT_PERIOD = 1.0  # seconds

# Scheduling policies understood by schedule.create_scheduling_algorithm
POLICIES = ["pool_reuse", "cost_ranked", "host_affinity", "balanced", "idle_first"]


@dataclass(frozen=True)
class PowerModelCoefficients:
    """
    Tuned coefficients of the pairwise/unpaired power-accounting models.

    These were fitted against measurements of a specific dual-socket platform;
    they are not physical constants and can be replaced per deployment.

    :param sockets: number of sockets the dynamic power is split across
    :param cores_per_socket_share: share divisor applied to a socket's dynamic power
    :param pairwise_full_tasks: tasks charged at full share before decay starts (pairwise)
    :param pairwise_decay: per-task decay of the share factor (pairwise)
    :param unpaired_group: every n-th task resets the share factor (unpaired)
    :param unpaired_decay: per-task decay of the share factor (unpaired)
    :param pairwise_io_overhead: IO power overhead ratio (pairwise)
    :param unpaired_io_overhead: IO power overhead ratio (unpaired)
    :param iowait_factor: multiplicative IOWait factor
    """
    sockets: int = 2
    cores_per_socket_share: int = 6
    pairwise_full_tasks: int = 2
    pairwise_decay: float = 0.88
    unpaired_group: int = 6
    unpaired_decay: float = 0.9
    pairwise_io_overhead: float = 0.486
    unpaired_io_overhead: float = 0.213
    iowait_factor: float = 1.31
