"""
Column Mapping Module.

Resolves canonical fields to the columns of an uploaded file:
    - automatic suggestions by label containment
    - stored templates for previously seen layouts (replace suggestions)
    - completeness checks before any row is normalized

Author: ML Engineering Team
"""

import re
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from config import get_config
from reconciler.utils.logger import get_logger
from reconciler.utils.helpers import turkish_lower, cell_text
from reconciler.utils.exceptions import UnmappedFieldError
from reconciler.input_handler import HeaderDetector, HeaderMap, RawGrid
from .schemas import CanonicalFieldSpec, FieldMapping
from .templates import MappingTemplateStore

# Initialize module logger
logger = get_logger(__name__)


def normalize_label(value: Any) -> str:
    """
    Comparison form of a label: Turkish lowercase, all whitespace removed.

    Example:
        >>> normalize_label("KDV Tutarı (Alacak)")
        'kdvtutarı(alacak)'
    """
    return re.sub(r'\s+', '', turkish_lower(cell_text(value)))


@dataclass
class MappingProposal:
    """
    Suggested mapping of one file, ready to be confirmed by the user.

    Attributes:
        header: Detected header row
        mapping: Suggested (or remembered) mapping
        fingerprint: Layout fingerprint of the header
        from_template: The mapping comes from the template store
        preview: First rows of the file
        missing: Keys of required fields still unresolved
    """
    header: HeaderMap
    mapping: FieldMapping
    fingerprint: str
    from_template: bool = False
    preview: List[Tuple[Any, ...]] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.missing


class ColumnMapper:
    """
    Maps canonical fields onto file columns.

    Attributes:
        template_store: Store of remembered mappings
        header_detector: Detector used to find header rows

    Example:
        >>> mapper = ColumnMapper(MappingTemplateStore())
        >>> proposal = mapper.propose(grid, SALES_EINVOICE_FIELDS)
        >>> proposal.mapping.get('invoice_number')
        'Fatura No'
        >>> mapper.ensure_complete(SALES_EINVOICE_FIELDS, proposal.mapping, proposal.header)
    """

    def __init__(
        self,
        template_store: Optional[MappingTemplateStore] = None,
        header_detector: Optional[HeaderDetector] = None
    ) -> None:
        self.template_store = template_store if template_store is not None else MappingTemplateStore()
        self.header_detector = header_detector or HeaderDetector()
        self.preview_rows = get_config("input.preview_rows", 50)

    def auto_suggest(self, fields: Sequence[CanonicalFieldSpec], header: HeaderMap) -> FieldMapping:
        """
        Suggest a column for every field whose label resembles a header.

        Exact (normalized) label matches are assigned first. Remaining
        fields then map to the first unclaimed header, in column order,
        where one normalized string contains the other; a "Döviz Borç"
        field therefore does not steal the "Borç" column.

        Args:
            fields: Canonical fields to map.
            header: Header of the file.

        Returns:
            FieldMapping with the suggestions (unmatched fields unset).
        """
        mapping = FieldMapping()
        labels = [(label, normalize_label(label)) for label in header.clean_labels]
        labels = [(label, normalized) for label, normalized in labels if normalized]
        targets = [(spec, normalize_label(spec.label)) for spec in fields]
        claimed = set()

        for spec, target in targets:
            for label, normalized in labels:
                if normalized == target and label not in claimed:
                    mapping.select(spec.key, label)
                    claimed.add(label)
                    break

        for spec, target in targets:
            if mapping.is_set(spec.key):
                continue
            for label, normalized in labels:
                if label in claimed:
                    continue
                if target in normalized or normalized in target:
                    mapping.select(spec.key, label)
                    claimed.add(label)
                    break

        logger.debug(f"Auto-suggested {len(mapping.selections)}/{len(fields)} fields")
        return mapping

    def propose(
        self,
        grid: RawGrid,
        fields: Sequence[CanonicalFieldSpec],
        header_row_index: Optional[int] = None
    ) -> MappingProposal:
        """
        Detect the header and propose a mapping for a file.

        A template stored for the same fingerprint replaces the automatic
        suggestion entirely.

        Args:
            grid: Raw rows of the file.
            fields: Canonical fields of the document type.
            header_row_index: Explicit header row chosen by the caller.

        Returns:
            MappingProposal.
        """
        header = self.header_detector.detect(grid, header_row_index)
        fingerprint = header.fingerprint

        mapping = self.template_store.get(fingerprint)
        from_template = mapping is not None
        if from_template:
            logger.info(f"Using stored mapping template for {grid.source_name or 'file'}")
        else:
            mapping = self.auto_suggest(fields, header)

        return MappingProposal(
            header=header,
            mapping=mapping,
            fingerprint=fingerprint,
            from_template=from_template,
            preview=grid.preview(self.preview_rows),
            missing=[spec.key for spec in self.missing_required(fields, mapping, header)],
        )

    def missing_required(
        self,
        fields: Sequence[CanonicalFieldSpec],
        mapping: FieldMapping,
        header: HeaderMap
    ) -> List[CanonicalFieldSpec]:
        return find_missing_required(fields, mapping, header)

    def ensure_complete(
        self,
        fields: Sequence[CanonicalFieldSpec],
        mapping: FieldMapping,
        header: HeaderMap
    ) -> None:
        ensure_mapping_complete(fields, mapping, header)

    def remember(self, header: HeaderMap, mapping: FieldMapping) -> None:
        """Save a confirmed mapping as the template of the header's layout."""
        self.template_store.save(header.fingerprint, mapping)


def find_missing_required(
    fields: Sequence[CanonicalFieldSpec],
    mapping: FieldMapping,
    header: HeaderMap
) -> List[CanonicalFieldSpec]:
    """
    List required fields that do not resolve to real columns.

    A required field is unresolved when it is unset, marked absent, or
    refers to a label missing from the header. Optional fields pointing at
    unknown labels are only reported in the log and read as absent.

    Args:
        fields: Canonical fields of the document type.
        mapping: Mapping to check.
        header: Header of the file.

    Returns:
        Unresolved required fields, in schema order.
    """
    known = header.columns
    missing = []

    for spec in fields:
        columns = mapping.columns(spec.key)
        unknown = [c for c in columns if c not in known]

        if spec.required:
            if mapping.is_absent(spec.key) or not columns or unknown:
                missing.append(spec)
        elif unknown:
            logger.warning(
                f"Optional field '{spec.label}' refers to unknown columns {unknown}; treated as absent"
            )

    return missing


def ensure_mapping_complete(
    fields: Sequence[CanonicalFieldSpec],
    mapping: FieldMapping,
    header: HeaderMap
) -> None:
    """
    Refuse to continue while required fields are unresolved.

    Raises:
        UnmappedFieldError: Listing the unresolved fields.
    """
    missing = find_missing_required(fields, mapping, header)
    if missing:
        raise UnmappedFieldError(
            [spec.key for spec in missing],
            [spec.label for spec in missing]
        )
