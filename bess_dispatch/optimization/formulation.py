"""Human-readable formulation of the dispatch model.

Holds a LaTeX description for every variable, constraint and objective
family and renders the set a configuration activates as Markdown.
"""

from typing import Optional

from bess_dispatch.optimization.config import DispatchConfig

VARIABLES = {
    "charge_discharge": (
        "``pc_{m, t} \\geq 0, \\; pd_{m, t} \\geq 0 "
        "\\quad \\forall m \\in \\mathcal{M}, t \\in \\mathcal{T}``"
    ),
    "state_of_charge": "``S_{min} \\leq s_t \\leq S_{max} \\quad \\forall t \\in \\mathcal{T}``",
    "cycles": "``z \\geq 0``",
    "profits": "``profits_t, \\; raw\\_profits_t \\in \\mathbb{R} \\quad \\forall t \\in \\mathcal{T}``",
}

CONSTRAINTS = {
    "state_of_charge": (
        "``s_{t} = \\gamma_s s_{t-1} + \\tau \\sum_{m \\in \\mathcal{M}} "
        "[\\gamma_c pc_{m, t} - ( pd_{m, t} / \\gamma_d )] \\quad \\forall t \\in \\mathcal{T}, "
        "\\; s_{t_0} = 0``"
    ),
    "charge_discharge_rates": (
        "``0 \\leq \\sum_{m \\in \\mathcal{M}} pc_{m, t} \\leq RR_c, \\; "
        "0 \\leq \\sum_{m \\in \\mathcal{M}} pd_{m, t} \\leq RR_d "
        "\\quad \\forall t \\in \\mathcal{T}``"
    ),
    "max_cycles": (
        "``z = S_{max} \\sum_{t \\in \\mathcal{T}} \\sum_{m \\in \\mathcal{M}} pd_{m, t}, "
        "\\; z \\leq lifetime\\_cycles``"
    ),
    "profits_over_time": (
        "``profits_t = profits_{t-1} + \\sum_{m \\in \\mathcal{M}} "
        "\\Lambda_{m, t} (pd_{m, t} - pc_{m, t})``"
    ),
    "profits_over_time_with_fees": (
        "``profits_t = profits_{t-1} + \\sum_{m \\in \\mathcal{M}} "
        "\\Lambda_{m, t} (pd_{m, t} - pc_{m, t}) - opex_t, \\; "
        "profits_{t_0} = \\sum_{m} \\Lambda_{m, t_0} (pd_{m, t_0} - pc_{m, t_0}) "
        "- opex_{t_0} - \\sum_{t} capex_t``"
    ),
    "raw_profits_over_time": (
        "``raw\\_profits_t = raw\\_profits_{t-1} + \\sum_{m \\in \\mathcal{M}} "
        "\\Lambda_{m, t} (pd_{m, t} - pc_{m, t})``"
    ),
}

OBJECTIVES = {
    "raw_profits": "``\\max \\; raw\\_profits_{t_{last}}``",
}


def active_families(config: DispatchConfig) -> dict[str, list[str]]:
    """List the variable, constraint and objective families a config builds."""
    variables = ["charge_discharge", "state_of_charge"]
    constraints = ["state_of_charge", "charge_discharge_rates"]
    if config.consider_lifetime:
        variables.append("cycles")
        constraints.append("max_cycles")
    variables.append("profits")
    if config.consider_fees:
        constraints.append("profits_over_time_with_fees")
    else:
        constraints.append("profits_over_time")
    constraints.append("raw_profits_over_time")
    return {
        "objectives": ["raw_profits"],
        "constraints": constraints,
        "variables": variables,
    }


def write_formulation(config: Optional[DispatchConfig] = None) -> str:
    """Render the formulation a configuration activates as Markdown."""
    families = active_families(config or DispatchConfig())
    sections = [
        ("Objective", OBJECTIVES, families["objectives"]),
        ("Constraints", CONSTRAINTS, families["constraints"]),
        ("Variables", VARIABLES, families["variables"]),
    ]
    lines = []
    for title, table, names in sections:
        lines.append(f"## {title}")
        lines.append("")
        lines.extend(f"- {table[name]}" for name in names)
        lines.append("")
    return "\n".join(lines)
