import matplotlib.pyplot as plt
import numpy as np

from friction_models.core.engine import friction_history
from friction_models.core.models import GeneralizedMaxwellSlipModel, make_elements


def main():
    model = GeneralizedMaxwellSlipModel(
        elements=make_elements([(50.0, 0.5, 0.3), (30.0, 0.5, 0.3), (20.0, 0.5, 0.4)]),
        static_coefficient=0.3,
        coulomb_coefficient=0.2,
        attraction_parameter=200.0,
        stribeck_velocity=0.005,
        viscous_damping=1.0,
    )

    # Harmonic displacement x(t) = A sin(w t), large enough for the elements to slip
    t = np.linspace(0.0, 2.0, 801)
    A, w = 1.0, 2.0 * np.pi
    x = A * np.sin(w * t)
    v = A * w * np.cos(w * t)

    hist = friction_history(model, t, np.full(t.size, 10.0), v, position=x, options={"dtmax": 2e-3})
    if not hist.reliable:
        print("integration incomplete:", [f.message for f in hist.failures])

    plt.figure()
    plt.plot(x[: hist.times.size], hist.forces)
    plt.xlabel("x [m]")
    plt.ylabel("F [N]")
    plt.title("GMS friction loop")
    plt.grid(True)
    plt.tight_layout()
    plt.show()


if __name__ == "__main__":
    main()
