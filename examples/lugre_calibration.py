import matplotlib.pyplot as plt
import numpy as np

from friction_models.core.engine import friction_history
from friction_models.core.fitting import fit_model
from friction_models.core.models import LuGreModel
from friction_models.core.report import format_fit_report


def main():
    # Synthetic "measurement": sinusoidal sliding under a constant load
    t = np.linspace(0.0, 1.0, 201)
    v = 0.05 * np.sin(2.0 * np.pi * t)
    N = np.full(t.size, 100.0)

    true = LuGreModel(0.3, 0.2, 0.01, 1.0e5, 300.0, 0.5)
    opts = {"abstol": 1e-10, "dtmax": 5e-3}
    F = friction_history(true, t, N, v, options=opts).forces
    F_meas = F + np.random.default_rng(0).normal(0.0, 0.05, t.size)

    guess = LuGreModel(0.4, 0.15, 0.02, 1.0e5, 300.0, 0.0)
    result = fit_model(
        guess,
        t,
        F_meas,
        N,
        v,
        options={
            **opts,
            "lower": [0.0, 0.0, 1e-3, 1e4, 0.0, 0.0],
            "upper": [1.0, 1.0, 0.1, 1e6, 1e3, 10.0],
            "diff_step": 1e-4,
        },
    )
    print(format_fit_report(result))

    F_fit = friction_history(result.model, t, N, v, options=opts).forces
    plt.figure()
    plt.plot(v, F_meas, ".", ms=3, label="measured")
    plt.plot(v, F_fit, "-", label="LuGre fit")
    plt.xlabel("v [m/s]")
    plt.ylabel("F [N]")
    plt.grid(True)
    plt.legend()
    plt.tight_layout()
    plt.show()


if __name__ == "__main__":
    main()
