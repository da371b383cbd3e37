"""
Operator Manager - registry of order preparers.

Operators are identified by an external id (national ID) chosen by whoever
registers them. Orders keep a copy of the operator taken at assignment time,
so editing or removing an operator never rewrites history.
"""
from typing import List, Optional

from exceptions import ConflictError, ValidationError
from models import Operator
from order_store import BaseStore, OPERATORS
from logger import get_logger

logger = get_logger(__name__)


def sort_operators(operators: List[Operator]) -> List[Operator]:
    """Operators sorted by name, case-insensitive."""
    return sorted(operators, key=lambda op: op.name.casefold())


class OperatorManager:
    """
    Add, edit and remove operators in the store.

    The manager keeps no state of its own apart from the last snapshot it was
    given: duplicate checks run against `operators`, which the controller
    refreshes from every store snapshot.

    Attributes:
        store (BaseStore): Persistence gateway
        operators (List[Operator]): Latest known operators, sorted by name
    """

    def __init__(self, store: BaseStore):
        self.store = store
        self.operators: List[Operator] = []

    def replace_snapshot(self, documents: List[dict]) -> List[Operator]:
        """Replace the known operators with a store snapshot."""
        self.operators = sort_operators([Operator.from_dict(d) for d in documents])
        return self.operators

    def get_operator(self, operator_id: Optional[str]) -> Optional[Operator]:
        for operator in self.operators:
            if operator.id == operator_id:
                return operator
        return None

    @staticmethod
    def _validate(operator_id: str, name: str) -> Operator:
        operator_id = (operator_id or '').strip()
        name = (name or '').strip()

        if not operator_id or not name:
            raise ValidationError("Ambos campos son obligatorios.")

        return Operator(id=operator_id, name=name)

    def add_operator(self, operator_id: str, name: str) -> Operator:
        """
        Register a new operator.

        Raises:
            ValidationError: id or name empty
            ConflictError: an operator with this id already exists
            PersistenceError: the store write failed
        """
        operator = self._validate(operator_id, name)

        if self.get_operator(operator.id) is not None:
            raise ConflictError(f"El preparador con la cédula {operator.id} ya existe.")

        self.store.upsert(OPERATORS, operator.to_dict())
        logger.info(f"Created operator: {operator.id} ({operator.name})")
        return operator

    def update_operator(self, operator_id: str, name: str) -> Operator:
        """
        Rename an operator. Orders already assigned keep the old name.

        Raises:
            ValidationError: id or name empty
            PersistenceError: the store write failed
        """
        operator = self._validate(operator_id, name)
        self.store.upsert(OPERATORS, operator.to_dict())
        logger.info(f"Updated operator: {operator.id} ({operator.name})")
        return operator

    def remove_operator(self, operator_id: str) -> bool:
        """
        Remove an operator from the registry.

        Returns:
            True if removed, False if not found

        Note: Historical orders still carry this operator's id and name.
        """
        removed = self.store.delete_by_id(OPERATORS, operator_id)
        if removed:
            logger.warning(f"Deleted operator: {operator_id}")
        return removed
