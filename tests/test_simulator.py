"""
Resource Simulator tests
------------------------

Validates:
 - idempotent toggling (one transition, one safety arm)
 - automatic cool-down after the safety duration
 - burn task + safety timer exist iff stress is active
 - stress gauge follows every transition
"""

import asyncio

import pytest

from commander.metrics import sample
from commander.simulator import ResourceSimulator


def _pair_present(sim: ResourceSimulator) -> bool:
    return sim._burn_task is not None and sim._safety_timer is not None


@pytest.mark.asyncio
async def test_toggle_is_idempotent():
    sim = ResourceSimulator(burn_ms=1, period_ms=5, safety_seconds=30)
    try:
        assert sim.set_stress(True) is True
        assert sim.set_stress(True) is False
        assert sim.active is True
        assert sim.transitions == 1
        assert sim.safety_arms == 1

        assert sim.set_stress(False) is True
        assert sim.set_stress(False) is False
        assert sim.active is False
        assert sim.transitions == 2
        assert sim.safety_arms == 1
    finally:
        sim.shutdown()


@pytest.mark.asyncio
async def test_safety_timer_forces_cooldown():
    sim = ResourceSimulator(burn_ms=1, period_ms=5, safety_seconds=0.05)
    sim.set_stress(True)
    assert sim.active

    await asyncio.sleep(0.3)

    assert sim.active is False
    assert sim.safety_expirations == 1
    assert not _pair_present(sim)


@pytest.mark.asyncio
async def test_burn_task_and_timer_follow_state():
    sim = ResourceSimulator(burn_ms=1, period_ms=5, safety_seconds=30)
    assert not _pair_present(sim)

    sim.set_stress(True)
    assert _pair_present(sim)
    burn_task = sim._burn_task
    timer = sim._safety_timer

    await asyncio.sleep(0.02)
    assert not burn_task.done()

    sim.set_stress(False)
    assert not _pair_present(sim)
    assert timer.cancelled()
    await asyncio.sleep(0)
    assert burn_task.cancelled()


@pytest.mark.asyncio
async def test_cancel_after_timer_fired_is_safe():
    sim = ResourceSimulator(burn_ms=1, period_ms=5, safety_seconds=0.01)
    sim.set_stress(True)
    await asyncio.sleep(0.1)
    assert sim.active is False
    # nothing left to cancel; must be a no-op
    assert sim.set_stress(False) is False
    sim.shutdown()


@pytest.mark.asyncio
async def test_gauge_tracks_transitions():
    sim = ResourceSimulator(burn_ms=1, period_ms=5, safety_seconds=30)
    sim.set_stress(True)
    assert sample("app_stress_mode_active") == 1.0
    sim.set_stress(False)
    assert sample("app_stress_mode_active") == 0.0


@pytest.mark.asyncio
async def test_reactivation_after_safety_cutoff():
    sim = ResourceSimulator(burn_ms=1, period_ms=5, safety_seconds=0.02)
    sim.set_stress(True)
    await asyncio.sleep(0.1)
    assert not sim.active

    assert sim.set_stress(True) is True
    assert sim.safety_arms == 2
    assert _pair_present(sim)
    sim.shutdown()
    assert not sim.active
