import logging

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
import simpy

from config import DEFAULT_MEASUREMENT_PERIOD
from datacenter import CloudComputeService, StorageService
from job_scheduler import EnergyAwareJobScheduler, JobManager
from output import SimulationOutput
from power_meter import PowerMeter
from schedule import create_scheduling_algorithm
from wms import GreedyWMS

logger = logging.getLogger(__name__)

# (traditional, pairwise) flags of the meters started for every run
METER_MODELS = [(True, False), (False, True), (False, False)]


def run_simulation(workflow, hosts, policy="cost_ranked", measurement_period=DEFAULT_MEASUREMENT_PERIOD,
                   cost_model_cls=None, **algorithm_kwargs):
    """
    Execute a workflow on a cloud made of ``hosts`` and meter its power draw.

    :param workflow: the Workflow to execute
    :param hosts: list of Host objects backing the cloud service
    :param policy: scheduling policy name, see config.POLICIES
    :param measurement_period: power meter period in seconds
    :param cost_model_cls: optional CostModel subclass, TraditionalPowerModel by default
    :return: (SimulationOutput, makespan in seconds)
    """
    env = simpy.Environment()
    cloud_service = CloudComputeService(hosts)
    compute_services = [cloud_service]
    storage_service = StorageService("data_server")
    output = SimulationOutput()
    event_queue = simpy.Store(env)

    cost_model = cost_model_cls(cloud_service) if cost_model_cls is not None else None
    algorithm = create_scheduling_algorithm(policy, cloud_service, cost_model, **algorithm_kwargs)
    job_scheduler = EnergyAwareJobScheduler(storage_service, algorithm, JobManager(env, workflow, event_queue))

    power_meters = [
        PowerMeter(env, workflow, cloud_service, cloud_service.get_execution_hosts(), measurement_period,
                   output, traditional=traditional, pairwise=pairwise)
        for traditional, pairwise in METER_MODELS
    ]

    wms = GreedyWMS(env, workflow, job_scheduler, compute_services, event_queue, power_meters)

    logger.info("Launching the Simulation (%s, %d hosts)...", policy, len(hosts))
    wms.start()
    env.run()

    # the meters may outlive the last task by up to one period
    makespan = max((t.end_date for t in workflow.get_tasks()), default=0.0)
    logger.info("Simulation done! Makespan: %.2f s", makespan)

    return output, makespan


def summarize_energy(output, measurement_period=DEFAULT_MEASUREMENT_PERIOD):
    """Energy in Wh per host (rows) and power-accounting model (columns)."""
    df = output.to_dataframe()
    if df.empty:
        return df
    df["energy_wh"] = df["consumption"] * measurement_period / 3600
    return df.pivot_table(index="host", columns="model", values="energy_wh", aggfunc="sum", fill_value=0.0)


def plot_energy(output, model="traditional"):
    df = output.to_dataframe()
    df = df[df["model"] == model]

    plt.figure(figsize=(14, 6))
    for host, host_df in df.groupby("host"):
        plt.step(host_df["timestamp"], host_df["consumption"], where="post", label=host, alpha=0.8)
    plt.title(f"Power Consumption of Hosts ({model} model)")
    plt.xlabel("Time (s)")
    plt.ylabel("Power (W)")
    plt.grid(True)
    plt.tight_layout()
    plt.legend(ncol=4, fontsize='small', loc='upper center', bbox_to_anchor=(0.5, -0.15))
    plt.show()


def compare_policies(energy_by_policy):
    """
    Stack per-policy energy summaries into one long table.

    :param energy_by_policy: dict of policy -> summarize_energy() result
    :return: DataFrame with columns policy/model/energy_wh, energy summed over hosts
    """
    rows = []
    for policy, energy in energy_by_policy.items():
        for model, wh in energy.sum().items():
            rows.append({"policy": policy, "model": model, "energy_wh": wh})
    return pd.DataFrame(rows, columns=["policy", "model", "energy_wh"])


def plot_policy_comparison(energy_by_policy):
    df = compare_policies(energy_by_policy)

    plt.figure(figsize=(14, 7))
    sns.barplot(x="model", y="energy_wh", hue="policy", data=df, order=["traditional", "pairwise", "unpaired"])
    plt.title("Energy Consumption by Policy for Each Power Model")
    plt.ylabel("Energy (Wh)")
    plt.xlabel("Power Model")
    plt.legend(title="Policy", loc='upper right', frameon=True)
    plt.tight_layout()
    plt.grid(axis='y')
    plt.show()
