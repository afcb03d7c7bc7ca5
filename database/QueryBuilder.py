import re
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

from recordmapper.database.Statement import Clause, Statement
from recordmapper.database.exceptions import MisuseError, ValidationError

_ORDER_RE = re.compile(r"^\s*(.+?)\s+(ASC|DESC)\s*$", re.IGNORECASE)
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


class Raw:
    """Literal SQL, embedded as-is. Never wrap user input in it."""

    def __init__(self, expression: str):
        self.expression = expression

    def __str__(self):
        return self.expression

    def __repr__(self):
        return f"Raw({self.expression!r})"


class QueryBuilder:
    """
    Accumulates predicates and modifiers through chained calls and compiles
    them into a :class:`Statement`.

    The builder never executes anything. Whoever consumes a statement is
    responsible for calling :meth:`reset_query` afterwards.
    """

    placeholder: str = "?"
    quote_char: str = ""

    def __init__(self, table: str = "", placeholder: Optional[str] = None, quote_char: Optional[str] = None):
        self.__table__ = table
        if placeholder is not None:
            self.placeholder = placeholder
        if quote_char is not None:
            self.quote_char = quote_char
        self.reset_query()

    def reset_query(self):
        self.columns: List[str] = ["*"]
        self.conditions: List[Clause] = []
        self.joins: List[str] = []
        self.group_by_columns: List[str] = []
        self.having_conditions: List[Clause] = []
        self.order_by_clauses: List[Tuple[str, str]] = []
        self.limit_count: Optional[int] = None
        self.offset_count: Optional[int] = None
        self.distinct_flag = False
        return self

    def has_pending_query(self) -> bool:
        return bool(
            self.columns != ["*"] or self.conditions or self.joins or self.group_by_columns
            or self.having_conditions or self.order_by_clauses or self.limit_count is not None
            or self.offset_count is not None or self.distinct_flag
        )

    def _quote_column(self, col: str) -> str:
        # expressions such as lower(name) or users.* pass through untouched
        if not self.quote_char or not _IDENTIFIER_RE.match(col):
            return col
        q = self.quote_char
        return ".".join(f"{q}{part}{q}" for part in col.split("."))

    # --------------------------------------------------------------------------
    # Predicates
    # --------------------------------------------------------------------------

    def _add(self, field: str, operator: str, value: Any = None, boolean: str = "AND"):
        boolean = boolean.upper()
        if boolean not in ("AND", "OR"):
            raise ValidationError(f"Clauses attach with AND or OR, not '{boolean}'.")
        self.conditions.append(Clause(field, operator, value, boolean))
        return self

    def equal(self, field: str, value: Any, boolean: str = "AND"):
        if value is None:
            return self.is_null(field, boolean)
        return self._add(field, "=", value, boolean)

    def not_equal(self, field: str, value: Any, boolean: str = "AND"):
        if value is None:
            return self.is_not_null(field, boolean)
        return self._add(field, "<>", value, boolean)

    def greater_than(self, field: str, value: Any, boolean: str = "AND"):
        return self._add(field, ">", value, boolean)

    def less_than(self, field: str, value: Any, boolean: str = "AND"):
        return self._add(field, "<", value, boolean)

    def greater_than_or_equal(self, field: str, value: Any, boolean: str = "AND"):
        return self._add(field, ">=", value, boolean)

    def less_than_or_equal(self, field: str, value: Any, boolean: str = "AND"):
        return self._add(field, "<=", value, boolean)

    def like(self, field: str, pattern: str, boolean: str = "AND"):
        return self._add(field, "LIKE", pattern, boolean)

    def not_like(self, field: str, pattern: str, boolean: str = "AND"):
        return self._add(field, "NOT LIKE", pattern, boolean)

    def in_(self, field: str, values: Iterable[Any], boolean: str = "AND"):
        return self._add(field, "IN", tuple(values), boolean)

    def not_in(self, field: str, values: Iterable[Any], boolean: str = "AND"):
        return self._add(field, "NOT IN", tuple(values), boolean)

    def is_null(self, field: str, boolean: str = "AND"):
        return self._add(field, "IS NULL", None, boolean)

    def is_not_null(self, field: str, boolean: str = "AND"):
        return self._add(field, "IS NOT NULL", None, boolean)

    def between(self, field: str, bounds: Sequence[Any], boolean: str = "AND"):
        bounds = tuple(bounds)
        if len(bounds) != 2:
            raise ValidationError("between() needs exactly a lower and an upper bound.")
        return self._add(field, "BETWEEN", bounds, boolean)

    def where(self, raw_sql: str, *params: Any, boolean: str = "AND"):
        """
        Append literal SQL. Only ``params`` are bound; the text itself is
        embedded unescaped, so it must never contain user input.
        """
        return self._add(raw_sql, "RAW", tuple(params), boolean)

    def scope(self, field: str, value: Any):
        """
        AND ``field = value`` onto everything pending. Pending clauses that
        attach with OR, or carry raw SQL, are parenthesized first so they
        cannot absorb the scope.
        """
        if any(c.boolean == "OR" or c.operator == "RAW" for c in self.conditions):
            self.conditions = [Clause("", "GROUP", tuple(self.conditions), "AND")]
        return self.equal(field, value)

    eq = equal
    ne = not_equal
    gt = greater_than
    lt = less_than
    ge = greater_than_or_equal
    le = less_than_or_equal

    def nest(self, callback: Callable[["QueryBuilder"], Any]):
        return self._group(callback, "AND")

    def or_nest(self, callback: Callable[["QueryBuilder"], Any]):
        return self._group(callback, "OR")

    def _group(self, callback, boolean: str):
        nested = QueryBuilder(self.__table__, self.placeholder, self.quote_char)
        callback(nested)
        if nested.conditions:
            self.conditions.append(Clause("", "GROUP", tuple(nested.conditions), boolean))
        return self

    # --------------------------------------------------------------------------
    # Modifiers
    # --------------------------------------------------------------------------

    def select(self, *columns: Union[str, Raw, List[str]]):
        if len(columns) == 1 and isinstance(columns[0], (list, tuple)):
            columns = tuple(columns[0])
        self.columns = [str(col) for col in columns] or ["*"]
        return self

    def distinct(self):
        self.distinct_flag = True
        return self

    def join(self, table: str, first: str, operator: Optional[str] = None, second: Optional[str] = None,
             join_type: str = "INNER"):
        on = first if operator is None else f"{first} {operator} {second}"
        clause = f"{join_type.upper()} JOIN {table} ON {on}"
        if clause not in self.joins:
            self.joins.append(clause)
        return self

    def left_join(self, table: str, first: str, operator: Optional[str] = None, second: Optional[str] = None):
        return self.join(table, first, operator, second, join_type="LEFT")

    def inner_join(self, table: str, first: str, operator: Optional[str] = None, second: Optional[str] = None):
        return self.join(table, first, operator, second, join_type="INNER")

    def group_by(self, *columns: Union[str, Raw]):
        if len(columns) == 1 and isinstance(columns[0], (list, tuple)):
            columns = tuple(columns[0])
        self.group_by_columns.extend(str(col) for col in columns)
        return self

    def having(self, raw_sql: str, *params: Any, boolean: str = "AND"):
        self.having_conditions.append(Clause(raw_sql, "RAW", tuple(params), boolean.upper()))
        return self

    def order_by(self, column: Union[str, Raw, Tuple[str, str]], direction: Optional[str] = None):
        if isinstance(column, tuple):
            column, direction = column
        if isinstance(column, Raw):
            key, direction = column.expression, ""
        else:
            key = str(column).strip()
            if direction is None:
                match = _ORDER_RE.match(key)
                if match:
                    key, direction = match.group(1), match.group(2)
        direction = (direction or "").upper()
        if direction not in ("ASC", "DESC", ""):
            raise ValidationError("Direction must be 'ASC', 'DESC', or ''")

        for i, (col, _) in enumerate(self.order_by_clauses):
            if col == key:
                self.order_by_clauses[i] = (col, direction)
                break
        else:
            self.order_by_clauses.append((key, direction))
        return self

    def limit(self, first: int, second: Optional[int] = None):
        """
        ``limit(count)`` or ``limit(offset, count)``.
        """
        if second is None:
            offset, count = None, first
        else:
            offset, count = first, second
        count = self._non_negative(count, "limit")
        if offset is not None:
            self.offset_count = self._non_negative(offset, "offset")
        self.limit_count = count
        return self

    def offset(self, count: int):
        self.offset_count = self._non_negative(count, "offset")
        return self

    @staticmethod
    def _non_negative(value: Any, name: str) -> int:
        try:
            value = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be an integer, got {value!r}") from None
        if value < 0:
            raise ValidationError(f"{name} must not be negative, got {value}")
        return value

    def remove_limit(self):
        self.limit_count = None
        self.offset_count = None
        return self

    # --------------------------------------------------------------------------
    # Compilation
    # --------------------------------------------------------------------------

    def _compile_clause(self, clause: Clause) -> Tuple[str, list]:
        p = self.placeholder
        op = clause.operator
        if op == "RAW":
            return clause.field, list(clause.value or ())
        if op == "GROUP":
            sql, params = self._compile_clauses(clause.value)
            return f"({sql})", params
        field = self._quote_column(clause.field)
        if op in ("IS NULL", "IS NOT NULL"):
            return f"{field} {op}", []
        if op in ("IN", "NOT IN"):
            values = list(clause.value)
            if not values:
                return ("1 = 0" if op == "IN" else "1 = 1"), []
            return f"{field} {op} ({', '.join([p] * len(values))})", values
        if op == "BETWEEN":
            return f"{field} BETWEEN {p} AND {p}", list(clause.value)
        return f"{field} {op} {p}", [clause.value]

    def _compile_clauses(self, clauses: Sequence[Clause]) -> Tuple[str, list]:
        parts, params = [], []
        for i, clause in enumerate(clauses):
            sql, clause_params = self._compile_clause(clause)
            parts.append(sql if i == 0 else f"{clause.boolean} {sql}")
            params.extend(clause_params)
        return " ".join(parts), params

    def _build_where(self) -> Tuple[str, list]:
        if not self.conditions:
            return "", []
        sql, params = self._compile_clauses(self.conditions)
        return f" WHERE {sql}", params

    def _order_by_strings(self) -> Tuple[str, ...]:
        return tuple(f"{col} {direction}".strip() for col, direction in self.order_by_clauses)

    def compile(self, kind: str = "select", values: Optional[dict[str, Any]] = None) -> Statement:
        """
        Compile the pending state into a statement of the given kind without
        touching the pending state.
        """
        table = self.__table__
        if not table:
            raise MisuseError("No table configured for this query.")

        where_sql, where_params = self._build_where()
        values = dict(values or {})
        common = dict(
            kind=kind,
            table=table,
            clauses=tuple(self.conditions),
            values=tuple(values.items()),
        )

        if kind == "select":
            return self._compile_select(table, where_sql, where_params, common)

        if kind == "insert":
            if not values:
                raise ValidationError("No data provided for insert.")
            columns = ", ".join(self._quote_column(col) for col in values)
            placeholders = ", ".join([self.placeholder] * len(values))
            sql = f"INSERT INTO {table} ({columns}) VALUES ({placeholders})"
            return Statement(sql=sql, params=tuple(values.values()), **common)

        if kind == "update":
            if not values:
                raise ValidationError("No update values provided.")
            if not where_sql:
                raise MisuseError("Unsafe update: missing WHERE clause.")
            set_clause = ", ".join(f"{self._quote_column(col)} = {self.placeholder}" for col in values)
            sql = f"UPDATE {table} SET {set_clause}{where_sql}"
            return Statement(sql=sql, params=tuple(values.values()) + tuple(where_params), **common)

        if kind == "delete":
            if not where_sql:
                raise MisuseError("Unsafe delete: missing WHERE clause.")
            return Statement(sql=f"DELETE FROM {table}{where_sql}", params=tuple(where_params), **common)

        raise MisuseError(f"Unknown statement kind '{kind}'.")

    def _compile_select(self, table, where_sql, where_params, common) -> Statement:
        params = list(where_params)
        sql = "SELECT DISTINCT " if self.distinct_flag else "SELECT "
        sql += f"{', '.join(self.columns)} FROM {table}"
        if self.joins:
            sql += " " + " ".join(self.joins)
        sql += where_sql

        if self.group_by_columns:
            sql += f" GROUP BY {', '.join(self.group_by_columns)}"

        if self.having_conditions:
            having_sql, having_params = self._compile_clauses(self.having_conditions)
            sql += f" HAVING {having_sql}"
            params.extend(having_params)

        order_by = self._order_by_strings()
        if order_by:
            sql += f" ORDER BY {', '.join(order_by)}"

        if self.limit_count is not None:
            sql += f" LIMIT {self.placeholder}"
            params.append(self.limit_count)
            if self.offset_count is not None:
                sql += f" OFFSET {self.placeholder}"
                params.append(self.offset_count)
        elif self.offset_count is not None:
            raise ValidationError("OFFSET requires a LIMIT.")

        return Statement(
            sql=sql,
            params=tuple(params),
            columns=tuple(self.columns),
            joins=tuple(self.joins),
            group_by=tuple(self.group_by_columns),
            having=tuple(self.having_conditions),
            order_by=order_by,
            limit=self.limit_count,
            offset=self.offset_count,
            distinct=self.distinct_flag,
            **common,
        )

    # --------------------------------------------------------------------------
    # Debugging
    # --------------------------------------------------------------------------

    def to_sql(self) -> str:
        """SQL of the pending select, leaving the builder untouched."""
        return self.compile("select").sql

    def get_parameters(self) -> Tuple[Any, ...]:
        return self.compile("select").params

    def substitute_params(self, sql: str, params: Sequence[Any]) -> str:
        for param in params:
            if isinstance(param, str):
                value = "'" + param.replace("'", "''") + "'"
            elif param is None:
                value = "NULL"
            else:
                value = str(param)
            sql = sql.replace(self.placeholder, value, 1)
        return sql

    def to_raw_sql(self) -> str:
        """Human-readable SQL for logs. Never execute its output."""
        statement = self.compile("select")
        return self.substitute_params(statement.sql, statement.params)
