"""Objective assembly for the dispatch model."""

import logging

from bess_dispatch.optimization.models import BessModel

logger = logging.getLogger(__name__)


def obj_raw_profits(model: BessModel) -> BessModel:
    """Maximise gross cumulative profit at the final timestamp.

    Fees and capex are tracked on ``profits`` for reporting only; they do not
    enter the objective, so they never change the dispatch decisions.
    """
    model.problem.setObjective(model.raw_profits[model.timegrid.last])
    logger.debug("Objective set to raw_profits at %s", model.timegrid.last)
    return model
