import matplotlib.pyplot as plt
import pytest

from config import POLICIES
from Helper import create_host_list, create_workflow
from Runner import compare_policies, plot_energy, run_simulation, summarize_energy
from tests.conftest import make_hosts, make_tasks
from workflow import TaskState, Workflow


def chained_workflow():
    """Four independent tasks, then two tasks waiting for all of them."""
    workflow = Workflow("chained")
    first, second = make_tasks(4, flops=2e9), make_tasks(6, flops=1e9, average_cpu=50.0)[4:]
    for task in first + second:
        workflow.add_task(task)
    for parent in first:
        for child in second:
            workflow.add_control_dependency(parent, child)
    return workflow


@pytest.mark.parametrize("policy", POLICIES)
def test_every_policy_completes_the_workflow(policy):
    workflow = chained_workflow()
    kwargs = {"host_cores": 2} if policy == "balanced" else {}

    output, makespan = run_simulation(workflow, make_hosts(2, 2), policy=policy, **kwargs)

    assert workflow.is_done()
    assert makespan >= 3.0
    assert {m.model for m in output.measurements} == {"traditional", "pairwise", "unpaired"}
    assert all(m.timestamp <= makespan for m in output.measurements)

    energy = summarize_energy(output)
    assert set(energy.columns) == {"traditional", "pairwise", "unpaired"}
    assert (energy.values > 0).all()


def test_deferred_task_runs_on_freed_vm():
    workflow = Workflow("deferred")
    tasks = make_tasks(5, flops=2e9)
    for task in tasks:
        workflow.add_task(task)

    _, makespan = run_simulation(workflow, make_hosts(2, 2), policy="pool_reuse")

    assert makespan == 4.0
    assert tasks[4].start_date == 2.0
    assert all(t.state == TaskState.COMPLETED for t in tasks)


def test_simulation_stops_when_no_vm_fits():
    workflow = Workflow("too_big")
    workflow.add_task(make_tasks(1)[0])

    with pytest.raises(RuntimeError, match="Cannot make progress"):
        run_simulation(workflow, make_hosts(2, 2), policy="host_affinity", vm_num_cores=4)


def test_unknown_policy_is_rejected():
    with pytest.raises(ValueError):
        run_simulation(chained_workflow(), make_hosts(1, 2), policy="round_robin")


def test_measurements_export_to_dataframe():
    workflow = chained_workflow()
    output, _ = run_simulation(workflow, make_hosts(1, 4), policy="cost_ranked")

    df = output.to_dataframe()
    assert list(df.columns) == ["host", "model", "consumption", "timestamp"]
    assert set(df["host"]) == {"worker1"}
    assert (df["consumption"] >= 100.0).all()


def test_generated_workflow_is_layered_and_reproducible():
    workflow = create_workflow(10, num_levels=2, seed=3)
    again = create_workflow(10, num_levels=2, seed=3)

    assert workflow.get_number_of_tasks() == 10
    assert [t.flops for t in workflow.get_tasks()] == [t.flops for t in again.get_tasks()]
    ready = workflow.get_ready_tasks()
    assert [t.task_id for t in ready] == [f"task_{i:04d}" for i in range(5)]
    for task in workflow.get_tasks():
        if task not in ready:
            assert task.state == TaskState.NOT_READY
            assert len(task.parents) == 5


def test_host_list_alternates_host_types():
    hosts = create_host_list(3)

    assert [h.host_id for h in hosts] == ["worker1", "worker2", "worker3"]
    assert all(h.num_cores == 12 for h in hosts)


def test_policy_comparison_sums_energy_over_hosts():
    energy_by_policy = {}
    for policy in ["pool_reuse", "idle_first"]:
        output, _ = run_simulation(chained_workflow(), make_hosts(2, 2), policy=policy)
        energy_by_policy[policy] = summarize_energy(output)

    df = compare_policies(energy_by_policy)

    assert len(df) == 6
    pool_reuse = df[(df["policy"] == "pool_reuse") & (df["model"] == "traditional")]["energy_wh"].item()
    assert pool_reuse == pytest.approx(energy_by_policy["pool_reuse"]["traditional"].sum())


def test_plot_energy_draws_one_line_per_host(monkeypatch):
    plt.switch_backend("Agg")
    monkeypatch.setattr(plt, "show", lambda: None)
    output, _ = run_simulation(chained_workflow(), make_hosts(2, 2), policy="pool_reuse")

    plot_energy(output, model="unpaired")
    try:
        labels = sorted(line.get_label() for line in plt.gca().get_lines())
        assert labels == ["worker1", "worker2"]
    finally:
        plt.close("all")
