"""Structural tests for the variable registry, constraints and assembler.

These tests inspect the built PuLP problem without solving it.
"""

import os
from datetime import datetime, timedelta
from unittest.mock import patch

import pulp
import pytest

from bess_dispatch.optimization import (
    BatteryParameters,
    ConfigurationError,
    DegenerateGridError,
    DispatchConfig,
    DispatchInputs,
    assemble_model,
    build_max_bess_profits,
)
from bess_dispatch.optimization.models import BessModel, TimeGrid
from bess_dispatch.optimization.policies import (
    CycleLifetimePolicy,
    GrossProfitPolicy,
    NetProfitPolicy,
    policies_for,
)
from bess_dispatch.optimization.variables import (
    declare_cycle_variable,
    declare_power_variables,
    declare_profit_variables,
    declare_soc_variable,
)

START = datetime(2024, 1, 1)
MARKETS = ["day_ahead", "intraday"]


def make_inputs(n: int = 4, with_costs: bool = True) -> DispatchInputs:
    datetimes = [START + timedelta(hours=i) for i in range(n)]
    return DispatchInputs(
        markets=MARKETS,
        datetimes=datetimes,
        price={(m, t): 10.0 + i for i, t in enumerate(datetimes) for m in MARKETS},
        operational_costs={t: 1.0 for t in datetimes} if with_costs else None,
        capex={t: 2.0 for t in datetimes} if with_costs else None,
    )


def make_battery() -> BatteryParameters:
    return BatteryParameters(
        storage_min=0.0,
        storage_max=10.0,
        retention=0.99,
        charge_efficiency=0.9,
        discharge_efficiency=0.9,
        max_charge_rate=5.0,
        max_discharge_rate=4.0,
    )


def make_config(**kwargs) -> DispatchConfig:
    return DispatchConfig(apply_env=False, **kwargs)


def constraint_signature(model: BessModel) -> dict:
    return {name: (c.sense, str(c)) for name, c in model.problem.constraints.items()}


class TestVariableRegistry:
    """Tests for variable declarations."""

    @pytest.fixture
    def empty_model(self):
        inputs = make_inputs(3)
        return BessModel(
            problem=pulp.LpProblem("test", pulp.LpMaximize),
            markets=inputs.markets,
            timegrid=inputs.timegrid,
        )

    def test_power_variables(self, empty_model):
        """Test charge/discharge are keyed by (market, timestamp) with [0, inf) bounds."""
        declare_power_variables(empty_model, 5.0, 4.0)

        assert len(empty_model.pc) == 2 * 3
        assert len(empty_model.pd) == 2 * 3
        for key in empty_model.pc:
            assert empty_model.pc[key].lowBound == 0
            assert empty_model.pc[key].upBound is None
            assert empty_model.pd[key].lowBound == 0
            assert empty_model.pd[key].upBound is None
        assert ("intraday", START + timedelta(hours=2)) in empty_model.pd

    def test_soc_variable(self, empty_model):
        """Test state of charge bounds."""
        declare_soc_variable(empty_model, 1.0, 9.0)

        assert list(empty_model.s) == list(empty_model.timegrid)
        assert all(v.lowBound == 1.0 and v.upBound == 9.0 for v in empty_model.s.values())

    def test_cycle_variable(self, empty_model):
        """Test the cycle counter is a single non-negative variable."""
        assert empty_model.z is None
        declare_cycle_variable(empty_model)

        assert empty_model.z.lowBound == 0
        assert empty_model.z.upBound is None

    def test_profit_variables(self, empty_model):
        """Test profit accumulators are unbounded."""
        declare_profit_variables(empty_model)

        for group in (empty_model.profits, empty_model.raw_profits):
            assert len(group) == 3
            assert all(v.lowBound is None and v.upBound is None for v in group.values())

    def test_unique_variable_names(self, empty_model):
        """Test that names never collide across groups."""
        declare_power_variables(empty_model, 5.0, 4.0)
        declare_soc_variable(empty_model, 0.0, 10.0)
        declare_profit_variables(empty_model)

        names = [
            v.name
            for group in (
                empty_model.pc,
                empty_model.pd,
                empty_model.s,
                empty_model.profits,
                empty_model.raw_profits,
            )
            for v in group.values()
        ]
        assert len(names) == len(set(names))


class TestConstraintFamilies:
    """Tests for the constraints the assembler wires."""

    def test_base_constraint_names(self):
        """Test always-present families exist for every step."""
        model = assemble_model(make_inputs(4), make_battery(), make_config())
        names = set(model.problem.constraints)

        for i in range(1, 4):
            assert f"con_state_of_charge_{i}" in names
            assert f"con_charge_rate_lo_{i}" in names
            assert f"con_charge_rate_hi_{i}" in names
            assert f"con_discharge_rate_lo_{i}" in names
            assert f"con_discharge_rate_hi_{i}" in names
            assert f"con_profits_over_time_{i}" in names
            assert f"con_raw_profits_over_time_{i}" in names
        assert "con_state_of_charge_initial" in names
        assert "con_charge_rate_initial" in names
        assert "con_discharge_rate_initial" in names
        assert "con_profits_over_time_initial" in names
        assert "con_raw_profits_over_time_initial" in names
        # Nothing indexed by t0 other than the initial conditions
        assert "con_state_of_charge_0" not in names
        assert "con_charge_rate_hi_0" not in names

    def test_constraint_senses(self):
        """Test lower and upper rate bounds are separate inequalities."""
        model = assemble_model(make_inputs(3), make_battery(), make_config())
        constraints = model.problem.constraints

        assert constraints["con_charge_rate_lo_1"].sense == pulp.LpConstraintGE
        assert constraints["con_charge_rate_hi_1"].sense == pulp.LpConstraintLE
        assert constraints["con_discharge_rate_lo_2"].sense == pulp.LpConstraintGE
        assert constraints["con_discharge_rate_hi_2"].sense == pulp.LpConstraintLE
        assert constraints["con_state_of_charge_1"].sense == pulp.LpConstraintEQ
        assert constraints["con_charge_rate_initial"].sense == pulp.LpConstraintEQ

    def test_constraint_count(self):
        """Test the number of constraints for the base formulation."""
        n = 5
        model = assemble_model(make_inputs(n), make_battery(), make_config())

        # soc: n, rates: 4 * (n - 1) + 2, profits: n, raw profits: n
        assert model.problem.numConstraints() == n + 4 * (n - 1) + 2 + n + n

    def test_no_cycle_submodel_by_default(self):
        """Test that without lifetime there is no cycle variable or constraint."""
        model = assemble_model(make_inputs(), make_battery(), make_config())

        assert model.z is None
        assert "con_total_cycles" not in model.problem.constraints
        assert "con_max_cycles" not in model.problem.constraints
        assert "z" not in {v.name for v in model.problem.variables()}

    def test_cycle_submodel(self):
        """Test that lifetime adds the cycle variable and both constraints."""
        model = assemble_model(
            make_inputs(),
            make_battery(),
            make_config(consider_lifetime=True, lifetime_cycles=100),
        )

        assert model.z is not None
        assert model.problem.constraints["con_total_cycles"].sense == pulp.LpConstraintEQ
        assert model.problem.constraints["con_max_cycles"].sense == pulp.LpConstraintLE
        assert "z" in {v.name for v in model.problem.variables()}

    def test_fees_change_only_net_profit(self):
        """Test that fee accounting leaves the gross recurrence untouched."""
        inputs = make_inputs()
        without = assemble_model(inputs, make_battery(), make_config())
        with_fees = assemble_model(inputs, make_battery(), make_config(consider_fees=True))

        a = constraint_signature(without)
        b = constraint_signature(with_fees)
        assert a.keys() == b.keys()
        for name in a:
            if name.startswith("con_profits_over_time"):
                assert a[name] != b[name]
            else:
                assert a[name] == b[name]

    def test_objective_is_final_raw_profit(self):
        """Test the objective maximises gross profit at the last timestamp."""
        model = assemble_model(make_inputs(4), make_battery(), make_config(consider_fees=True))
        text = str(model.problem.objective)

        assert model.problem.sense == pulp.LpMaximize
        assert "raw_profits_3" in text
        assert "raw_profits_2" not in text
        assert "pd_" not in text

    def test_solver_is_bound(self):
        """Test that the given solver is bound to the problem."""
        backend = pulp.PULP_CBC_CMD(msg=False)
        model = assemble_model(make_inputs(), make_battery(), make_config(), solver=backend)
        assert model.solver is backend


class TestIdempotence:
    """Tests that repeated builds are independent and identical."""

    def test_identical_structure(self):
        """Test two builds produce the same constraints on distinct problems."""
        inputs = make_inputs()
        config = make_config(consider_lifetime=True, consider_fees=True)

        first = assemble_model(inputs, make_battery(), config)
        second = assemble_model(inputs, make_battery(), config)

        assert first is not second
        assert first.problem is not second.problem
        assert first.pc[MARKETS[0], START] is not second.pc[MARKETS[0], START]
        assert constraint_signature(first) == constraint_signature(second)
        assert str(first.problem.objective) == str(second.problem.objective)


class TestPolicies:
    """Tests for sub-model policy selection."""

    def test_default_policies(self):
        """Test only gross profit accrual is active by default."""
        policies = policies_for(make_config(), make_inputs(), make_battery())
        assert [type(p) for p in policies] == [GrossProfitPolicy]

    def test_all_policies(self):
        """Test lifetime and fees select their policies."""
        policies = policies_for(
            make_config(consider_lifetime=True, consider_fees=True),
            make_inputs(),
            make_battery(),
        )
        assert [type(p) for p in policies] == [CycleLifetimePolicy, NetProfitPolicy]

    def test_net_profit_requires_costs(self):
        """Test fee accounting fails eagerly without cost schedules."""
        with pytest.raises(ConfigurationError, match="operational_costs is required"):
            assemble_model(
                make_inputs(with_costs=False),
                make_battery(),
                make_config(consider_fees=True),
            )

    def test_costs_ignored_without_fees(self):
        """Test cost schedules are not required when fees are off."""
        model = assemble_model(make_inputs(with_costs=False), make_battery(), make_config())
        assert "con_profits_over_time_initial" in model.problem.constraints


class TestBuildMaxBessProfits:
    """Tests for the functional entry point."""

    def build(self, datetimes, price=None, **kwargs):
        price = price or {("m1", t): 10.0 for t in datetimes}
        return build_max_bess_profits(
            None,
            ["m1"],
            datetimes,
            price,
            0.0,
            10.0,
            1.0,
            1.0,
            1.0,
            5.0,
            5.0,
            kwargs.pop("operational_costs", None),
            kwargs.pop("capex", None),
            **kwargs,
        )

    def test_returns_model_groups(self):
        """Test the returned model exposes every variable group."""
        datetimes = [START, START + timedelta(hours=1)]
        model = self.build(datetimes, consider_lifetime=True)

        assert set(model.pc) == {("m1", t) for t in datetimes}
        assert set(model.s) == set(datetimes)
        assert set(model.raw_profits) == set(datetimes)
        assert model.z is not None

    def test_single_timestamp(self):
        """Test that a one-point grid is rejected."""
        with pytest.raises(ConfigurationError, match="at least 2 timestamps"):
            self.build([START])

    def test_non_uniform_grid(self):
        """Test that a non-uniform grid is rejected."""
        datetimes = [START, START + timedelta(hours=1), START + timedelta(hours=2, minutes=30)]
        with pytest.raises(DegenerateGridError):
            self.build(datetimes)

    def test_missing_capex_with_fees(self):
        """Test fee accounting rejects incomplete capex coverage."""
        datetimes = [START, START + timedelta(hours=1)]
        with pytest.raises(ConfigurationError, match="capex is missing"):
            self.build(
                datetimes,
                operational_costs={t: 1.0 for t in datetimes},
                capex={START: 1.0},
                consider_fees=True,
            )

    def test_explicit_flags_ignore_env(self, monkeypatch):
        """Test keyword flags are not overridden by environment variables."""
        monkeypatch.setenv("BESS_CONSIDER_LIFETIME", "true")
        datetimes = [START, START + timedelta(hours=1)]

        model = self.build(datetimes, consider_lifetime=False)
        assert model.z is None

    @pytest.mark.parametrize(
        "env_vars",
        [
            {"BESS_LIFETIME_CYCLES": "lots"},
            {"BESS_CONSIDER_FEES": "maybe"},
            {"OPT_TIME_LIMIT": "0"},
            {"OPT_SOLVER": ""},
        ],
    )
    def test_invalid_env_vars_ignored(self, env_vars):
        """Test unusable environment settings do not affect the keyword entry point."""
        datetimes = [START, START + timedelta(hours=1)]

        with patch.dict(os.environ, env_vars, clear=True):
            model = self.build(datetimes, consider_lifetime=True, lifetime_cycles=10)

        assert model.z is not None
        assert "con_max_cycles" in model.problem.constraints

    def test_negative_lifetime_cycles(self):
        """Test the keyword cycle budget is still validated."""
        datetimes = [START, START + timedelta(hours=1)]
        with pytest.raises(ConfigurationError, match="lifetime_cycles must be non-negative"):
            self.build(datetimes, consider_lifetime=True, lifetime_cycles=-1)

    def test_uniform_grid_timegrid(self):
        """Test the model keeps the grid it was built over."""
        datetimes = [START + timedelta(minutes=15 * i) for i in range(3)]
        model = self.build(datetimes)

        assert isinstance(model.timegrid, TimeGrid)
        assert model.timegrid.step_hours == 0.25
        assert model.datetimes == tuple(datetimes)
