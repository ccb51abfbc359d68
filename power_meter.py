import enum
import logging

import simpy

from config import PowerModelCoefficients

logger = logging.getLogger(__name__)

TRADITIONAL = "traditional"
PAIRWISE = "pairwise"
UNPAIRED = "unpaired"


class StopDaemonMessage:
    name = "ServiceStopDaemonMessage"


class MeterWakeup(enum.Enum):
    TIMEOUT = "timeout"
    STOP = "stop"


class PowerMeter:
    """
    Periodically samples the power draw of a set of hosts from the tasks
    currently running on them, and records one measurement per host per period
    in the simulation output.

    Three accounting models are available:

    - traditional: every running task adds a flat per-core share of the host's
      dynamic power range, whatever its CPU utilization;
    - pairwise: cores are enabled by pairs, the first two tasks are charged a
      full share and each further task a decaying one;
    - unpaired: the share resets every ``unpaired_group`` tasks and decays in between.
    """

    def __init__(self, env, workflow, cloud_service, hostnames, measurement_period, output,
                 traditional=True, pairwise=False, coefficients=None):
        """
        :param env: simpy environment
        :param workflow: the workflow whose running tasks are metered
        :param cloud_service: service providing the metered hosts
        :param hostnames: the list of metered hosts, as hostnames
        :param measurement_period: the measurement period, at least 1 second
        :param output: SimulationOutput receiving the measurements
        :param traditional: whether the traditional power model should be used
        :param pairwise: whether cores in a socket are enabled in a pairwise manner
        :param coefficients: PowerModelCoefficients, the tuned defaults if None
        """
        if not hostnames:
            raise ValueError("PowerMeter: no host to meter!")
        if measurement_period < 1:
            raise ValueError("PowerMeter: measurement period must be at least 1 second")
        self.hosts = {h: cloud_service.get_host(h) for h in hostnames}

        self.env = env
        self.workflow = workflow
        self.output = output
        self.traditional = traditional
        self.pairwise = pairwise
        self.measurement_period = measurement_period
        self.coefficients = coefficients or PowerModelCoefficients()
        self.time_to_next_measurement = 0.0
        self.mailbox = simpy.Store(env)
        self.process = None

    @property
    def model(self):
        if self.traditional:
            return TRADITIONAL
        return PAIRWISE if self.pairwise else UNPAIRED

    def start(self):
        self.process = self.env.process(self.run())
        return self.process

    def stop(self):
        self.mailbox.put(StopDaemonMessage())

    def run(self):
        logger.info("New Power Meter starting (%s)", self.model)

        while True:
            yield self.env.timeout(0)
            current_time = self.env.now

            if current_time >= self.time_to_next_measurement:
                # separate tasks per host
                tasks_per_host = {}
                for task in self.workflow.get_tasks():
                    if task.is_running and task.execution_host in self.hosts:
                        tasks_per_host.setdefault(task.execution_host, []).append(task)

                for hostname, tasks in tasks_per_host.items():
                    self.compute_power_measurements(hostname, tasks)

                self.time_to_next_measurement = current_time + self.measurement_period

            wakeup = yield from self.wait_for_next_message(self.measurement_period)
            if wakeup == MeterWakeup.STOP:
                break

        logger.info("Power Meter terminating (%s)", self.model)

    def wait_for_next_message(self, timeout):
        """
        Wait for a control message for at most ``timeout`` seconds.

        :return: MeterWakeup.TIMEOUT or MeterWakeup.STOP
        :raises RuntimeError: on any other message
        """
        get = self.mailbox.get()
        fired = yield get | self.env.timeout(timeout)
        if get not in fired:
            get.cancel()
            return MeterWakeup.TIMEOUT

        message = fired[get]
        logger.info("Power Meter got a %s message", getattr(message, "name", type(message).__name__))
        if isinstance(message, StopDaemonMessage):
            return MeterWakeup.STOP
        raise RuntimeError(f"PowerMeter: Unexpected [{getattr(message, 'name', message)}] message")

    def compute_power_measurements(self, hostname, tasks):
        """
        Record the current power consumption of a host.

        :param hostname: the host name
        :param tasks: the tasks running on the host
        :return: the recorded EnergyMeasurement
        """
        host = self.hosts[hostname]
        c = self.coefficients
        task_index = 0
        task_factor = 1.0
        consumption = host.power_idle

        for task in sorted(tasks, key=lambda t: (t.start_date, t.task_id)):
            if self.traditional:
                task_consumption = (host.power_max - host.power_idle) / host.num_cores

            else:
                # dynamic power per socket
                dynamic_power = (host.power_max - host.power_idle) * (task.average_cpu / 100) / c.sockets
                share = dynamic_power / c.cores_per_socket_share

                if self.pairwise and task_index < c.pairwise_full_tasks:
                    task_consumption = share
                elif self.pairwise:
                    task_consumption = task_factor * share
                    task_factor *= c.pairwise_decay
                elif task_index % c.unpaired_group == 0:
                    task_consumption = share
                    task_factor = 1.0
                else:
                    task_consumption = task_factor * share
                    task_factor *= c.unpaired_decay

                # power related to IO usage
                task_consumption += task_consumption * (c.pairwise_io_overhead if self.pairwise
                                                        else c.unpaired_io_overhead)
                task_consumption *= c.iowait_factor
                task_index += 1

            consumption += task_consumption

        logger.debug("Host %s draws %.2f W (%s, %d tasks)", hostname, consumption, self.model, len(tasks))
        return self.output.add_timestamp_energy_consumption(hostname, self.model, consumption, self.env.now)
