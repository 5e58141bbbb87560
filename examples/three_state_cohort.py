"""
Example: a three-state cohort model built in code.

Shows the full path from parameter draws to discounted outcomes:
1. Draw PSA samples and register them in a ParameterStore
2. Describe each strategy as a transition template with complement cells
3. Run the cohort model over samples x strategies
4. Compare quadrature methods on the same trajectories
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np

from cohortsim import (
    CohortModel,
    ParameterStore,
    SimulationSettings,
    TimeSchedule,
    TransitionTemplate,
    ValueTemplate,
    beta_rng,
    gamma_rng,
)

N_SAMPLES = 100
STATES = ["pre", "symp", "death"]


def build_model() -> CohortModel:
    rng = np.random.default_rng(42)
    schedule = TimeSchedule(starts=[0, 10])
    store = ParameterStore(n_samples=N_SAMPLES, schedule=schedule)

    store.register_draws("p_disease_base", beta_rng(0.25, 0.03, N_SAMPLES, rng=rng))
    store.register_draws("p_disease_med", beta_rng(0.125, 0.02, N_SAMPLES, rng=rng))
    store.register_draws("p_death_symp", beta_rng(0.1, 0.02, N_SAMPLES, rng=rng))
    store.register("p_death_all", 0.01, interval=0)
    store.register("p_death_all", 0.03, interval=1)
    store.register("u_pre", 0.95)
    store.register_draws("u_symp", beta_rng(0.7, 0.05, N_SAMPLES, rng=rng))
    store.register("cost_drug", 5000)
    store.register_draws("cost_hospit", gamma_rng(11000, 1500, N_SAMPLES, rng=rng))

    def template(p_disease: str) -> TransitionTemplate:
        return TransitionTemplate.from_rows(
            STATES,
            [
                ["C", p_disease, "p_death_all"],
                [0, "C", "p_death_symp"],
                [0, 0, 1],
            ],
            absorbing=["death"],
        )

    return CohortModel(
        state_names=STATES,
        strategies={"base": template("p_disease_base"), "med": template("p_disease_med")},
        parameters=store,
        initial=[1.0, 0.0, 0.0],
        settings=SimulationSettings(
            n_cycles=20,
            discount_rates={"qalys": 0.015, "costs": 0.03},
        ),
        values={
            "qalys": ValueTemplate.from_mapping(STATES, {"pre": "u_pre", "symp": "u_symp"}),
            "costs": {
                "base": ValueTemplate.from_mapping(STATES, {"symp": "cost_hospit"}),
                "med": ValueTemplate.from_mapping(STATES, {"pre": "cost_drug", "symp": "cost_hospit"}),
            },
        },
    )


def main():
    model = build_model()

    for method in ["riemann_left", "riemann_right", "trapezoidal"]:
        results = model.run(method=method, keep_stateprobs=False)
        print(f"\n{method}")
        print(results.summarize().to_string(index=False))

    results = model.run(method="trapezoidal")
    first_sample = results.stateprobs[results.stateprobs["sample"] == 0]
    print("\nState probabilities, sample 0, base strategy:")
    print(
        first_sample[first_sample["strategy"] == "base"]
        .pivot(index="t", columns="state", values="prob")
        .head(12)
        .round(4)
    )


if __name__ == "__main__":
    main()
