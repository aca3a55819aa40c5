# gamcoach/counterfactual/solver.py
"""
Adapter between the problem record and a MIP solver.

The search only relies on the contract of `solve`: it takes a problem record
and returns the status, the 0/1 value of every variable and the objective
value. PulpSolver fulfils it with PuLP and its CBC (or GLPK) backend; any
object exposing the same method can be used instead.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import pulp

from ..config import SolverConfig
from .builder import OptimizationProblem

logger = logging.getLogger(__name__)

OPTIMAL = 'optimal'


@dataclass
class SolverResult:
    """Outcome of one solve."""
    status: str
    variable_assignment: Dict[str, int] = field(default_factory=dict)
    objective_value: Optional[float] = None

    @property
    def is_optimal(self) -> bool:
        return self.status == OPTIMAL


class PulpSolver:
    """Solves problem records with PuLP."""

    def __init__(self, config: Optional[SolverConfig] = None):
        self.config = config or SolverConfig()
        self.config.validate()

    def _backend(self):
        if self.config.backend == 'glpk':
            return pulp.GLPK_CMD(msg=self.config.msg, timeLimit=self.config.time_limit)
        return pulp.PULP_CBC_CMD(
            msg=self.config.msg,
            timeLimit=self.config.time_limit,
            threads=self.config.threads
        )

    def solve(self, problem: Union[OptimizationProblem, Dict[str, Any]]) -> SolverResult:
        """
        Solves a problem record.

        Args:
            problem: An OptimizationProblem or its dictionary form.

        Returns:
            A SolverResult. Any status other than optimal carries no assignment.
        """
        record = problem.to_dict() if isinstance(problem, OptimizationProblem) else problem
        binaries = set(record.get('binaries', []))
        bounds = {b['name']: b for b in record.get('bounds', [])}

        if not binaries:
            return SolverResult(status='infeasible')

        variables = {}

        def variable(name: str) -> pulp.LpVariable:
            if name not in variables:
                if name in binaries:
                    variables[name] = pulp.LpVariable(name, cat=pulp.LpBinary)
                else:
                    bound = bounds.get(name, {})
                    variables[name] = pulp.LpVariable(name, lowBound=bound.get('lb'), upBound=bound.get('ub'))
            return variables[name]

        objective = record['objective']
        sense = pulp.LpMaximize if objective.get('direction') == 'maximize' else pulp.LpMinimize
        lp = pulp.LpProblem('counterfactual', sense)
        lp += pulp.lpSum(t['coef'] * variable(t['name']) for t in objective['vars']), 'objective'

        for i, constraint in enumerate(record.get('subjectTo', [])):
            name = constraint.get('name', f'c_{i}')
            expression = pulp.lpSum(t['coef'] * variable(t['name']) for t in constraint['vars'])
            constraint_bounds = constraint['bounds']
            kind = constraint_bounds['type']
            if kind == 'upper':
                lp += expression <= constraint_bounds['ub'], name
            elif kind == 'lower':
                lp += expression >= constraint_bounds['lb'], name
            elif kind == 'fixed':
                lp += expression == constraint_bounds['lb'], name
            elif kind == 'double':
                lp += expression >= constraint_bounds['lb'], f'{name}_lb'
                lp += expression <= constraint_bounds['ub'], f'{name}_ub'
            else:
                raise ValueError(f"Unknown bound type '{kind}' in constraint '{name}'")

        lp.solve(self._backend())
        status = pulp.LpStatus[lp.status]
        if status != 'Optimal':
            logger.debug(f"Solver finished with status '{status}'")
            return SolverResult(status=status.lower())

        assignment = {name: int(round(var.varValue or 0)) for name, var in variables.items()}
        return SolverResult(
            status=OPTIMAL,
            variable_assignment=assignment,
            objective_value=pulp.value(lp.objective)
        )
