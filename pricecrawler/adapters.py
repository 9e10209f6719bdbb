"""
Page adapters: the site-specific half of the pagination crawler.

The pagination controller only knows the cycle "wait for rows, expand,
extract, find next, advance". Which elements those steps touch is described
by a PageAdapter: selectors, the attribute used to address table fields, and
how a disabled "next" control is marked. Supporting another table layout
means adding an adapter, not touching the controller.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from .extractor import DETAIL_SCOPE, FieldSpec, parse_rows
from .models import TransactionRecord

if TYPE_CHECKING:
    from .page_session import PageSession


# =============================================================================
# In-page scripts
# =============================================================================

CLEAR_FILTERS_JS = """
(selector) => {
    const buttons = document.querySelectorAll(selector);
    buttons.forEach((btn) => btn.click());
    return buttons.length;
}
"""

EXPAND_ROWS_JS = """
(cfg) => {
    let clicked = 0;
    document.querySelectorAll(cfg.toggleSelector).forEach((icon) => {
        const row = icon.closest(cfg.rowContainer);
        const next = row ? row.nextElementSibling : null;
        const shown = next ? next.querySelector(cfg.shownSelector) : null;
        if (!shown) {
            icon.click();
            clicked += 1;
        }
    });
    return clicked;
}
"""

EXTRACT_ROWS_JS = """
(cfg) => {
    const readValue = (scope, field) => {
        if (!scope) return null;
        const container = scope.querySelector(`[${cfg.attribute}="${field.address}"]`);
        if (!container) return null;
        const el = container.querySelector(field.valueSelector);
        if (!el || el.textContent === null) return null;
        return el.textContent.trim();
    };

    return Array.from(document.querySelectorAll(cfg.rowSelector)).map((row) => {
        const sibling = row.nextElementSibling;
        const detail = sibling && sibling.classList.contains(cfg.detailRowClass) ? sibling : null;
        const cells = {};
        for (const field of cfg.fields) {
            const value = readValue(field.scope === 'detail' ? detail : row, field);
            if (value !== null) {
                cells[field.name] = value;
            }
        }
        return cells;
    });
}
"""

NEXT_PAGE_JS = """
(cfg) => {
    const button = document.querySelector(cfg.nextSelector);
    if (!button) return { exists: false, enabled: false };
    const holder = button.closest(cfg.disabledAncestor);
    const disabled = !!(holder && holder.classList.contains(cfg.disabledClass));
    return { exists: true, enabled: !disabled };
}
"""


def attribute_selector(attribute: str, value: str) -> str:
    return f'[{attribute}="{value}"]'


@dataclass
class NextPageState:
    """What the pagination control currently allows."""
    exists: bool = False
    enabled: bool = False

    @classmethod
    def from_js(cls, value: Any) -> "NextPageState":
        if not isinstance(value, dict):
            return cls()
        return cls(exists=bool(value.get("exists")), enabled=bool(value.get("enabled")))


# =============================================================================
# Adapter
# =============================================================================

@dataclass
class PageAdapter:
    """Selector configuration and page operations for one table layout."""
    name: str
    table_root_selector: str
    row_selector: str
    detail_row_class: str
    next_button_selector: str
    fields: List[FieldSpec] = field(default_factory=list)

    # Field containers are located by this attribute, e.g. da-id="row-price"
    address_attribute: str = "da-id"

    # Optional controls
    filter_remove_selector: Optional[str] = None
    expand_toggle_selector: Optional[str] = None
    expand_row_container: str = "tr"
    expanded_shown_selector: str = ".expanded-content.show"

    # The "next" control is disabled through a class on an ancestor
    disabled_ancestor_selector: str = "li"
    disabled_class: str = "disabled"

    @property
    def has_detail_fields(self) -> bool:
        return any(spec.scope == DETAIL_SCOPE for spec in self.fields)

    def extraction_config(self) -> Dict[str, Any]:
        return {
            "rowSelector": self.row_selector,
            "detailRowClass": self.detail_row_class,
            "attribute": self.address_attribute,
            "fields": [spec.to_js() for spec in self.fields],
        }

    async def clear_filters(self, session: "PageSession") -> int:
        """Click every filter-removal control. Returns how many were clicked."""
        if not self.filter_remove_selector:
            return 0
        removed = await session.evaluate(CLEAR_FILTERS_JS, self.filter_remove_selector)
        return int(removed or 0)

    async def expand_rows(self, session: "PageSession") -> int:
        """Open the detail panel of every row that is still collapsed."""
        if not self.expand_toggle_selector or not self.has_detail_fields:
            return 0
        clicked = await session.evaluate(EXPAND_ROWS_JS, {
            "toggleSelector": self.expand_toggle_selector,
            "rowContainer": self.expand_row_container,
            "shownSelector": self.expanded_shown_selector,
        })
        return int(clicked or 0)

    async def extract_rows(self, session: "PageSession") -> List[TransactionRecord]:
        """Read the transactions visible on the current page."""
        raw_rows = await session.evaluate(EXTRACT_ROWS_JS, self.extraction_config())
        return parse_rows(raw_rows, self.fields)

    async def next_page_state(self, session: "PageSession") -> NextPageState:
        state = await session.evaluate(NEXT_PAGE_JS, {
            "nextSelector": self.next_button_selector,
            "disabledAncestor": self.disabled_ancestor_selector,
            "disabledClass": self.disabled_class,
        })
        return NextPageState.from_js(state)

    async def go_to_next_page(self, session: "PageSession") -> None:
        await session.click(self.next_button_selector)


# =============================================================================
# Pre-configured adapters
# =============================================================================

def _da(value: str) -> str:
    return attribute_selector("da-id", value)


PROPERTYGURU_FIELDS = [
    FieldSpec("date", "row-date", ".field-value"),
    FieldSpec("bedrooms", "row-bedroom", ".main-text"),
    FieldSpec("size", "row-bedroom", ".sub-text"),
    FieldSpec("price", "row-price", ".main-text"),
    FieldSpec("pricePerSqft", "row-price", ".sub-text"),
    FieldSpec("floorLevel", "row-floorLevel", ".field-value"),
    FieldSpec("buildStatus", "row-completed", ".field-value"),
    FieldSpec("lease", "expanded-lease", ".expanded-item-value", scope=DETAIL_SCOPE),
    FieldSpec("address", "expanded-address", ".expanded-item-value", scope=DETAIL_SCOPE),
]

PROPERTYGURU_ADAPTER = PageAdapter(
    name="propertyguru",
    table_root_selector=".price-history-table-root",
    row_selector=".table-row-collapsed",
    detail_row_class="table-row-expanded",
    next_button_selector=_da("hui-pagination-btn-next"),
    fields=PROPERTYGURU_FIELDS,
    filter_remove_selector=_da("filter-chip-remove-btn"),
    expand_toggle_selector=_da("collapse-icon"),
)

ADAPTERS: Dict[str, PageAdapter] = {
    PROPERTYGURU_ADAPTER.name: PROPERTYGURU_ADAPTER,
}

DEFAULT_ADAPTER = PROPERTYGURU_ADAPTER


def get_adapter(name: Optional[str] = None) -> PageAdapter:
    """
    Look up a registered adapter.

    Args:
        name: Adapter name; None returns the default adapter

    Raises:
        KeyError: If no adapter is registered under ``name``
    """
    if name is None:
        return DEFAULT_ADAPTER
    try:
        return ADAPTERS[name.lower()]
    except KeyError:
        raise KeyError(
            f"Unknown adapter '{name}'. Available: {', '.join(sorted(ADAPTERS))}"
        ) from None
