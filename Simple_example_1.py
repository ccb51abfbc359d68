# Run one workflow on two 12-core workers under every scheduling policy and compare energy.

import logging

from config import POLICIES
from Helper import create_host_list, create_workflow
from log import setup_logging
from Runner import compare_policies, plot_energy, plot_policy_comparison, run_simulation, summarize_energy

setup_logging(logging.WARNING)

print("Start Simulation")
makespans = {}
energy_by_policy = {}
outputs = {}

for policy in POLICIES:
    workflow = create_workflow(num_tasks=40, num_levels=4, seed=42)
    hosts = create_host_list(2)

    output, makespan = run_simulation(workflow, hosts, policy=policy, measurement_period=1.0)
    energy = summarize_energy(output, measurement_period=1.0)
    makespans[policy] = makespan
    energy_by_policy[policy] = energy
    outputs[policy] = output

    print(f"\n--- {policy} ---")
    print(f"Makespan: {makespan:.1f}s")
    print(energy.round(3))

# ----- FINAL OUTPUT -----
print("\nSimulation Complete!")
table = compare_policies(energy_by_policy).pivot(index="policy", columns="model", values="energy_wh")
table["makespan_s"] = table.index.map(makespans)
print(table.round(3))

plot_policy_comparison(energy_by_policy)
plot_energy(outputs["cost_ranked"], model="pairwise")
