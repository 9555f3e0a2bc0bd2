"""
Tests for the activation update and single simulation runs.
Run: python -m wom_diffusion.test_model
"""

from __future__ import annotations

import traceback

import numpy as np

from wom_diffusion.errors import EmptyNetwork, InsufficientPopulation, InvalidParameter
from wom_diffusion.model import (
    ParameterSetting,
    activation_probability,
    activation_update,
    convergence_threshold,
    run_simulation,
)
from wom_diffusion.network import build_network
from wom_diffusion.state import ActivationState

ALMOST_ONE = 1.0 - 1e-12


def test_activation_probability():
    assert activation_probability(0.0, 0.0, 0.0, 10, 10) == 0.0
    assert abs(activation_probability(0.1, 0.0, 0.0, 0, 0) - 0.1) < 1e-12
    expected = 1.0 - 0.99 * 0.95 ** 2 * 0.9 ** 3
    got = activation_probability(0.01, 0.05, 0.1, 2, 3)
    assert abs(got - expected) < 1e-12, f"FAIL: p={got}, expected {expected}"
    print("PASS test_activation_probability")


def test_convergence_threshold():
    assert convergence_threshold(100, 0.95) == 95
    assert convergence_threshold(2992, 0.95) == 2843
    assert convergence_threshold(10, 1.0) == 10
    assert convergence_threshold(3, 0.01) == 1
    print("PASS test_convergence_threshold")


def test_update_strong_ties_within_pass():
    # one seed node, strong ties certain to fire, no ads, no weak ties
    net = build_network(10, 10)
    state = ActivationState.reset(net)
    state.activate((0, 0))
    setting = ParameterSetting(s=10, w=0, alpha=0.0, beta_w=0.0, beta_s=ALMOST_ONE)
    activation_update(net, state, setting, np.random.default_rng(1))
    assert state.total_active() == 10, f"FAIL: total={state.total_active()}"
    print("PASS test_update_strong_ties_within_pass")


def test_update_is_sequential():
    # Three singleton subnetworks, one active, w=1, weak ties certain to fire.
    # With simultaneous updates both inactive nodes end active w.p. 1/4;
    # with in-place sequential updates the second visited node also sees
    # the first one's activation, which raises that to 1/2.
    setting = ParameterSetting(s=1, w=1, alpha=0.0, beta_w=ALMOST_ONE, beta_s=0.0)
    net = build_network(3, 1)
    n_trials = 400
    both = 0
    for seed in range(n_trials):
        state = ActivationState.reset(net)
        state.activate((0, 0))
        activation_update(net, state, setting, np.random.default_rng(seed))
        if state.total_active() == 3:
            both += 1
    assert 160 < both < 240, f"FAIL: both activated in {both}/{n_trials} passes"
    print(f"PASS test_update_is_sequential ({both}/{n_trials})")


def test_update_never_deactivates():
    net = build_network(50, 5)
    state = ActivationState.reset(net)
    rng = np.random.default_rng(3)
    setting = ParameterSetting(s=5, w=3, alpha=0.02, beta_w=0.05, beta_s=0.1)
    before = state.active.copy()
    for _ in range(20):
        activation_update(net, state, setting, rng)
        assert np.all(state.active[before]), "FAIL: a node was deactivated"
        before = state.active.copy()
    print("PASS test_update_never_deactivates")


def test_convergence_small_network():
    setting = ParameterSetting(s=5, w=5, alpha=0.05, beta_w=0.05, beta_s=0.1)
    traj = run_simulation(100, setting, convergence_fraction=0.95, max_steps=200, seed=11)
    assert traj.converged, f"FAIL: not converged, final={traj.final_count}"
    assert traj.final_count >= 95, f"FAIL: final={traj.final_count}"
    assert len(traj.t) <= 200
    assert traj.t95 == traj.t[-1]
    print(f"PASS test_convergence_small_network (T95={traj.t95})")


def test_trajectory_invariants():
    setting = ParameterSetting(s=17, w=10, alpha=0.0005, beta_w=0.005, beta_s=0.01)
    traj = run_simulation(300, setting, max_steps=60, seed=99)
    assigned = 17 * (300 // 17)
    assert traj.assigned_nodes == assigned
    assert traj.t == list(range(1, len(traj.t) + 1)), "FAIL: t not 1..T"
    counts = np.array(traj.active_count)
    assert np.all(np.diff(counts) >= 0), "FAIL: active count decreased"
    assert counts.max() <= assigned, "FAIL: active count above assigned nodes"
    print("PASS test_trajectory_invariants")


def test_degenerate_non_convergence():
    setting = ParameterSetting(s=5, w=5, alpha=0.0, beta_w=0.0, beta_s=0.0)
    traj = run_simulation(100, setting, max_steps=25, seed=0)
    assert not traj.converged, "FAIL: zero-probability run marked converged"
    assert traj.t == list(range(1, 26)), f"FAIL: t={traj.t}"
    assert all(c == 0 for c in traj.active_count), "FAIL: nodes activated with p=0"
    assert traj.t95 is None
    print("PASS test_degenerate_non_convergence")


def test_wall_clock_budget():
    setting = ParameterSetting(s=5, w=5, alpha=0.0, beta_w=0.0, beta_s=0.0)
    traj = run_simulation(100, setting, max_steps=10**9, seed=0, max_seconds=0.0)
    assert not traj.converged
    assert len(traj.t) == 1, f"FAIL: ran {len(traj.t)} steps past a zero budget"
    print("PASS test_wall_clock_budget")


def test_reproducibility():
    setting = ParameterSetting(s=10, w=5, alpha=0.01, beta_w=0.02, beta_s=0.05)
    a = run_simulation(300, setting, max_steps=200, seed=1234)
    b = run_simulation(300, setting, max_steps=200, seed=1234)
    assert a.active_count == b.active_count, "FAIL: same seed, different trajectory"
    c = run_simulation(300, setting, max_steps=200, seed=4321)
    assert c.active_count != a.active_count, "FAIL: different seeds matched step-for-step"
    print("PASS test_reproducibility")


def test_invalid_settings():
    bad = [
        ParameterSetting(s=0, w=5, alpha=0.01, beta_w=0.02, beta_s=0.05),
        ParameterSetting(s=5, w=-1, alpha=0.01, beta_w=0.02, beta_s=0.05),
        ParameterSetting(s=5, w=5, alpha=1.0, beta_w=0.02, beta_s=0.05),
        ParameterSetting(s=5, w=5, alpha=0.01, beta_w=-0.1, beta_s=0.05),
        ParameterSetting(s=5, w=5, alpha=0.01, beta_w=0.02, beta_s=1.5),
    ]
    for setting in bad:
        try:
            run_simulation(100, setting, max_steps=5, seed=0)
        except InvalidParameter:
            continue
        raise AssertionError(f"FAIL: {setting} accepted")

    ok = ParameterSetting(s=5, w=5, alpha=0.01, beta_w=0.02, beta_s=0.05)
    for kwargs in ({"convergence_fraction": 0.0}, {"convergence_fraction": 1.5}, {"max_steps": 0}):
        try:
            run_simulation(100, ok, seed=0, **kwargs)
        except InvalidParameter:
            continue
        raise AssertionError(f"FAIL: {kwargs} accepted")
    print("PASS test_invalid_settings")


def test_integral_float_sizes_normalised():
    setting = ParameterSetting(s=5.0, w=np.int64(3), alpha=0.05, beta_w=0.05, beta_s=0.1)
    assert type(setting.s) is int and type(setting.w) is int, f"FAIL: {setting}"
    traj = run_simulation(30, setting, max_steps=300, seed=8)
    assert traj.assigned_nodes == 30 and traj.converged

    for bad in (ParameterSetting(s=5.5, w=2, alpha=0.05, beta_w=0.05, beta_s=0.1),
                ParameterSetting(s=5, w=True, alpha=0.05, beta_w=0.05, beta_s=0.1)):
        try:
            run_simulation(30, bad, max_steps=5, seed=0)
        except InvalidParameter:
            continue
        raise AssertionError(f"FAIL: {bad} accepted")

    try:
        build_network(30, 5.0)
    except InvalidParameter:
        pass
    else:
        raise AssertionError("FAIL: build_network accepted a float size")
    print("PASS test_integral_float_sizes_normalised")


def test_run_errors():
    setting = ParameterSetting(s=20, w=1, alpha=0.01, beta_w=0.02, beta_s=0.05)
    try:
        run_simulation(10, setting, max_steps=5, seed=0)
    except EmptyNetwork:
        pass
    else:
        raise AssertionError("FAIL: n_nodes < s accepted")

    setting = ParameterSetting(s=10, w=11, alpha=0.01, beta_w=0.02, beta_s=0.05)
    try:
        run_simulation(20, setting, max_steps=5, seed=0)
    except InsufficientPopulation:
        pass
    else:
        raise AssertionError("FAIL: w above external population accepted")
    print("PASS test_run_errors")


if __name__ == "__main__":
    print("=" * 60)
    print("Running model tests")
    print("=" * 60)
    tests = [
        test_activation_probability,
        test_convergence_threshold,
        test_update_strong_ties_within_pass,
        test_update_is_sequential,
        test_update_never_deactivates,
        test_convergence_small_network,
        test_trajectory_invariants,
        test_degenerate_non_convergence,
        test_wall_clock_budget,
        test_reproducibility,
        test_invalid_settings,
        test_integral_float_sizes_normalised,
        test_run_errors,
    ]

    passed = 0
    failed = 0
    for t in tests:
        try:
            t()
            passed += 1
        except Exception as exc:
            print(f"FAIL {t.__name__}: {exc}")
            traceback.print_exc()
            failed += 1

    print("=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    raise SystemExit(1 if failed else 0)
