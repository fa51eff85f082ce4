"""Shared list contract: page/limit/sort parsing and the paginated response shape."""
from typing import Callable, Dict, Mapping, Tuple

from flask import current_app
from wtforms import IntegerField, StringField
from wtforms.validators import AnyOf, NumberRange, Optional

from utils.validation import ApiForm, blank_to_none, strip_value

SORT_ORDERS = ("asc", "desc")


class PageQueryForm(ApiForm):
    page = IntegerField("Page", default=1, validators=[Optional(), NumberRange(min=1, message="Page must be 1 or greater")])
    limit = IntegerField("Limit", validators=[Optional(), NumberRange(min=1, message="Limit must be 1 or greater")])


class SortedPageQueryForm(PageQueryForm):
    sort_by = StringField("Sort by", name="sortBy", filters=[strip_value, blank_to_none], default="createdAt")
    sort_order = StringField(
        "Sort order",
        name="sortOrder",
        filters=[strip_value, blank_to_none],
        default="desc",
        validators=[Optional(), AnyOf(SORT_ORDERS, message="sortOrder must be asc or desc")],
    )


def page_params(form: PageQueryForm) -> Tuple[int, int]:
    default_size = int(current_app.config.get("DEFAULT_PAGE_SIZE", 10))
    max_size = int(current_app.config.get("MAX_PAGE_SIZE", 100))
    page = form.page.data or 1
    limit = min(form.limit.data or default_size, max_size)
    return page, limit


def apply_sort(query, columns: Mapping[str, object], sort_by: str | None, sort_order: str | None, default: str = "createdAt"):
    column = columns.get(sort_by or default, columns[default])
    if (sort_order or "desc") == "asc":
        return query.order_by(column.asc())
    return query.order_by(column.desc())


def paginate(query, page: int, limit: int, serialize: Callable) -> Dict[str, object]:
    pagination = query.paginate(page=page, per_page=limit, error_out=False)
    return {
        "items": [serialize(item) for item in pagination.items],
        "totalPages": pagination.pages,
        "currentPage": page,
        "total": pagination.total,
    }
