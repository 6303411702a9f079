"""Option Resolver: admin labels of select and multi-select options -> option ids."""
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..context import ImportContext
from ..models import AttributeOption, AttributeOptionValue

logger = logging.getLogger(__name__)


class OptionResolver:

    def __init__(self, session: Session, context: ImportContext):
        self.session = session
        self.context = context
        self._options: Dict[int, Dict[str, int]] = {}

    def _get_options(self, attribute_id: int) -> Dict[str, int]:
        if attribute_id not in self._options:
            rows = self.session.query(AttributeOptionValue.value, AttributeOption.option_id).join(
                AttributeOptionValue, AttributeOptionValue.option_id == AttributeOption.option_id
            ).filter(
                AttributeOption.attribute_id == attribute_id,
                AttributeOptionValue.store_id == 0
            ).all()
            self._options[attribute_id] = {label: option_id for label, option_id in rows}
        return self._options[attribute_id]

    def resolve_option(self, attribute_code: str, label: str,
                       auto_create_attributes: List[str]) -> Tuple[Optional[int], Optional[str]]:
        if attribute_code not in self.context.product_attributes:
            return None, f"attribute not found: {attribute_code}"

        attribute_id = self.context.product_attributes[attribute_code].attribute_id
        options = self._get_options(attribute_id)

        if label in options:
            return options[label], None

        if attribute_code not in auto_create_attributes:
            return None, f"option '{label}' not found in attribute '{attribute_code}'"

        option = AttributeOption(attribute_id=attribute_id, sort_order=len(options))
        self.session.add(option)
        self.session.flush()
        self.session.add(AttributeOptionValue(option_id=option.option_id, store_id=0, value=label))
        self.session.flush()

        options[label] = option.option_id
        logger.info(f"Created option '{label}' ({option.option_id}) for attribute '{attribute_code}'")
        return option.option_id, None

    def resolve_options(self, attribute_code: str, labels: List[str],
                        auto_create_attributes: List[str]) -> Tuple[List[int], Optional[str]]:
        ids = []
        errors = []
        for label in labels:
            option_id, error = self.resolve_option(attribute_code, label, auto_create_attributes)
            if error is None:
                ids.append(option_id)
            else:
                errors.append(error)
        if errors:
            return [], '; '.join(errors)
        return ids, None

    def forget_uncommitted(self) -> None:
        """Options are read again on next use, without those created in a rolled back transaction."""
        self._options = {}
