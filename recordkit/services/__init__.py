from recordkit.services.calculations import AggregateEvaluator, CalculationError, build_spec
from recordkit.services.conditions import ConditionError, resolve_conditions
from recordkit.services.criteria import Criteria, CriteriaError
from recordkit.services.events import Event, EventsError, EventsManager
from recordkit.services.integrity import ReferentialIntegrityEnforcer
from recordkit.services.persistence import RecordManager

__all__ = [
	"AggregateEvaluator",
	"CalculationError",
	"ConditionError",
	"Criteria",
	"CriteriaError",
	"Event",
	"EventsError",
	"EventsManager",
	"RecordManager",
	"ReferentialIntegrityEnforcer",
	"build_spec",
	"resolve_conditions",
]
