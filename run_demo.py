#!/usr/bin/env python3
"""
pathdev - Demo
==============
License: AGPL-3.0-or-later

Simply run: python run_demo.py

This will:
1. Simulate a straight-driving car and a weaving cyclist with forecasts
2. Feed them tick by tick through the evaluator
3. Print the deviation report once the warm-up has elapsed
"""

import argparse
import logging

import numpy as np

from pathdev import (EvaluatorConfig, ForecastPath, ObjectLabel, ObjectSnapshot,
                     PerceptionEvaluator, Pose)


def make_snapshot(object_id, t, label, position, heading, speed, dt, n_forecast):
    """Constant-velocity forecast from the current pose."""
    x, y = position
    forecast = [Pose(x=x + speed * np.cos(heading) * i * dt,
                     y=y + speed * np.sin(heading) * i * dt,
                     yaw=heading) for i in range(n_forecast)]
    return ObjectSnapshot(
        object_id=object_id,
        timestamp=t,
        pose=Pose(x=x, y=y, yaw=heading),
        forecast_paths=[ForecastPath(time_step=dt, poses=forecast)],
        label=label,
    )


def simulate(duration=20.0, dt=0.1, seed=42):
    """Yield one batch per tick."""
    rng = np.random.default_rng(seed)
    n_forecast = int(5.0 / dt) + 1
    for k in range(int(duration / dt) + 1):
        t = k * dt
        car = make_snapshot("car-1", t, ObjectLabel.CAR,
                            (10.0 * t, rng.normal(0.0, 0.05)), 0.0, 10.0, dt, n_forecast)
        weave = 0.8 * np.sin(0.6 * t)
        cyclist = make_snapshot("bike-1", t, ObjectLabel.BICYCLE,
                                (4.0 * t, 5.0 + weave), np.arctan2(0.48 * np.cos(0.6 * t), 4.0),
                                4.0, dt, n_forecast)
        yield [car, cyclist]


def main():
    parser = argparse.ArgumentParser(description="pathdev deviation demo")
    parser.add_argument("--duration", type=float, default=20.0, help="simulated seconds")
    parser.add_argument("--window", type=int, default=11, help="smoothing window (odd)")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    cfg = EvaluatorConfig(prediction_time_horizons=(1.0, 2.0, 3.0, 5.0),
                          smoothing_window_size=args.window)
    evaluator = PerceptionEvaluator(cfg)
    for batch in simulate(args.duration):
        evaluator.submit(batch)

    report = evaluator.report()
    if not report:
        print("Still warming up - simulate longer than the largest horizon.")
        return

    print(f"{'metric':<36}{'count':>8}{'mean':>10}{'min':>10}{'max':>10}")
    for name, r in sorted(report.items()):
        if not r['count']:
            print(f"{name:<36}{0:>8}{'-':>10}{'-':>10}{'-':>10}")
            continue
        print(f"{name:<36}{r['count']:>8}{r['mean']:>10.4f}{r['min']:>10.4f}{r['max']:>10.4f}")


if __name__ == "__main__":
    main()
