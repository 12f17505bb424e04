"""Survey question discovery, response counting and age/gender cross-tabs.

Survey answers arrive as paired ``question_NN`` / ``proposition_NN`` columns.
Propositions are multi-valued (``"A;B"``) and are counted per token, while the
cross-tabs count records whose proposition contains a response.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from insights.filters import ALL, FilterSpec, Selection, apply_filters, toggle_selection

if TYPE_CHECKING:
    from insights.data import Dataset


logger = logging.getLogger(__name__)


QUESTION_NUMBERS = tuple(f"{i:02d}" for i in range(1, 11))
DIMENSIONS = ("age_group", "gender")
AGE_GROUP_ORDER = ("16-24", "25-34", "35-44", "45-54", "55-64", "65+", "Under 18")


@dataclass(frozen=True)
class QuestionField:
    number: str
    question_key: str
    proposition_key: str


@dataclass(frozen=True)
class DemographicBreakdown:
    question_number: str
    question_text: str
    response_counts: Dict[str, int]
    total_responses: int
    demographic_cross_tab: Dict[str, Dict[str, Dict[str, Any]]]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def question_field(number: object) -> QuestionField:
    num = f"{int(str(number).strip()):02d}"
    return QuestionField(number=num, question_key=f"question_{num}", proposition_key=f"proposition_{num}")


def parse_question_field(number: object) -> Optional[QuestionField]:
    """``question_field`` for untrusted input; ``None`` when the number is not numeric."""
    try:
        return question_field(number)
    except (TypeError, ValueError):
        logger.info("Ignoring unparseable question number %r", number)
        return None


def _non_empty(series: pd.Series) -> pd.Series:
    s = series.astype("string").str.strip()
    return (s.notna() & (s != "")).fillna(False).astype(bool)


def discover_questions(df: pd.DataFrame) -> List[QuestionField]:
    """Question numbers with at least one record carrying both text and a proposition."""
    found: List[QuestionField] = []
    for number in QUESTION_NUMBERS:
        qf = question_field(number)
        if qf.question_key not in df.columns or qf.proposition_key not in df.columns:
            continue
        if (_non_empty(df[qf.question_key]) & _non_empty(df[qf.proposition_key])).any():
            found.append(qf)
    return found


def split_responses(value: object) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, str) and pd.isna(value):
        return []
    return [token.strip() for token in str(value).split(";") if token.strip()]


def _responses(df: pd.DataFrame, qf: QuestionField) -> pd.Series:
    if qf.proposition_key not in df.columns:
        return pd.Series([[] for _ in range(len(df))], index=df.index, dtype=object)
    return df[qf.proposition_key].map(split_responses)


def question_text(df: pd.DataFrame, qf: QuestionField) -> str:
    if qf.question_key in df.columns:
        texts = df[qf.question_key].astype("string").str.strip()
        texts = texts[_non_empty(df[qf.question_key])]
        if not texts.empty:
            return str(texts.iloc[0])
    return f"Question {int(qf.number)}"


def response_counts(df: pd.DataFrame, qf: QuestionField) -> Dict[str, int]:
    tokens = _responses(df, qf).explode().dropna()
    if tokens.empty:
        return {}
    counts = tokens.value_counts()
    ordered = sorted(((str(k), int(v)) for k, v in counts.items()), key=lambda kv: (-kv[1], kv[0]))
    return dict(ordered)


def sort_age_groups(groups: Iterable[str]) -> List[str]:
    def _key(group: str) -> Tuple[int, int, str]:
        if group in AGE_GROUP_ORDER:
            return (0, AGE_GROUP_ORDER.index(group), "")
        return (1, 0, group)

    return sorted(groups, key=_key)


def _pct(part: int, whole: int) -> float:
    return (part / whole) * 100 if whole else 0.0


def _group_values(df: pd.DataFrame, dim: str) -> pd.Series:
    return df[dim].astype("string").str.strip()


def _ordered_groups(dim: str, groups: pd.Series) -> List[str]:
    if dim == "age_group":
        return sort_age_groups(str(g) for g in groups.unique())
    counts = groups.value_counts()
    return [str(g) for g, _ in sorted(counts.items(), key=lambda kv: (-int(kv[1]), str(kv[0])))]


def cross_tabulate(df: pd.DataFrame, qf: QuestionField, responses: Sequence[str]) -> Dict[str, Dict[str, Dict[str, Any]]]:
    """Per dimension group: ``total`` is every record in the group, answered or not."""
    answers = _responses(df, qf)
    out: Dict[str, Dict[str, Dict[str, Any]]] = {}
    for dim in DIMENSIONS:
        if dim not in df.columns or df.empty:
            out[dim] = {}
            continue
        valid = _non_empty(df[dim])
        groups = _group_values(df, dim)[valid]
        group_answers = answers[valid]
        chose = {r: int(group_answers.map(lambda toks, r=r: r in toks).sum()) for r in responses}

        table: Dict[str, Dict[str, Any]] = {}
        for group in _ordered_groups(dim, groups):
            in_group = group_answers[groups == group]
            total = int(len(in_group))
            per_response: Dict[str, Dict[str, float]] = {}
            for r in responses:
                count = int(in_group.map(lambda toks, r=r: r in toks).sum())
                per_response[r] = {
                    "count": count,
                    "percent": _pct(count, total),
                    "percent_of_total": _pct(count, chose[r]),
                }
            table[group] = {"total": total, "responses": per_response}
        out[dim] = table
    return out


def analyze_question(df: pd.DataFrame, qf: QuestionField, selected: Optional[Sequence[str]] = None) -> DemographicBreakdown:
    counts = response_counts(df, qf)
    responses = list(dict.fromkeys(selected)) if selected else list(counts)
    return DemographicBreakdown(
        question_number=qf.number,
        question_text=question_text(df, qf),
        response_counts=counts,
        total_responses=int(sum(counts.values())),
        demographic_cross_tab=cross_tabulate(df, qf, responses),
    )


def gender_distribution(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty or "gender" not in df.columns:
        return []
    genders = _group_values(df, "gender")[_non_empty(df["gender"])]
    total = len(df)
    return [
        {"name": g, "value": int(n), "percentage": _pct(int(n), total)}
        for g, n in sorted(genders.value_counts().items(), key=lambda kv: (-int(kv[1]), str(kv[0])))
    ]


def age_distribution(df: pd.DataFrame) -> List[Dict[str, Any]]:
    if df.empty or "age_group" not in df.columns:
        return []
    ages = _group_values(df, "age_group")[_non_empty(df["age_group"])]
    counts = ages.value_counts()
    total = len(df)
    return [
        {"age_group": g, "count": int(counts[g]), "percentage": _pct(int(counts[g]), total)}
        for g in sort_age_groups(str(x) for x in counts.index)
    ]


@dataclass(frozen=True)
class DemographicSelection:
    """Response and demographic-group picks for the demographics tab.

    Independent of the dashboard ``FilterSpec``: the group selectors follow the
    same ``"all"`` rules but are narrowed separately.
    """

    question_number: Optional[str] = None
    responses: Tuple[str, ...] = field(default_factory=tuple)
    age_groups: Selection = ALL
    genders: Selection = ALL

    def with_question(self, number: str) -> "DemographicSelection":
        qf = parse_question_field(number)
        return replace(self, question_number=qf.number if qf else str(number).strip(), responses=())

    def toggle_response(self, response: str) -> "DemographicSelection":
        if response in self.responses:
            return replace(self, responses=tuple(r for r in self.responses if r != response))
        return replace(self, responses=self.responses + (response,))

    def select_age_group(self, value: str) -> "DemographicSelection":
        return replace(self, age_groups=toggle_selection(self.age_groups, value))

    def select_gender(self, value: str) -> "DemographicSelection":
        return replace(self, genders=toggle_selection(self.genders, value))

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        mask = pd.Series(True, index=df.index)
        for dim, chosen in (("age_group", self.age_groups), ("gender", self.genders)):
            if chosen == ALL:
                continue
            if dim not in df.columns:
                return df.iloc[0:0]
            mask &= _group_values(df, dim).isin(set(chosen)).fillna(False).astype(bool)
        return df[mask]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_number": self.question_number,
            "responses": list(self.responses),
            "age_groups": ALL if self.age_groups == ALL else sorted(self.age_groups),
            "genders": ALL if self.genders == ALL else sorted(self.genders),
        }


def compute_demographics(
    dataset: "Dataset",
    spec: FilterSpec,
    question_number: Optional[str] = None,
    selected_responses: Optional[Sequence[str]] = None,
    selection: Optional[DemographicSelection] = None,
) -> Dict[str, Any]:
    subset = apply_filters(dataset.records, spec)
    if selection is not None:
        subset = selection.apply(subset)

    available = list(dataset.questions)
    if question_number is None and selection is not None:
        question_number = selection.question_number
    if selected_responses is None and selection is not None and selection.responses:
        selected_responses = selection.responses

    breakdown: Optional[DemographicBreakdown] = None
    qf = parse_question_field(question_number) if question_number is not None else None
    if qf is not None:
        if qf in available:
            breakdown = analyze_question(subset, qf, selected_responses)
        else:
            breakdown = DemographicBreakdown(
                question_number=qf.number,
                question_text=f"Question {int(qf.number)}",
                response_counts={},
                total_responses=0,
                demographic_cross_tab={dim: {} for dim in DIMENSIONS},
            )
    elif question_number is None and available:
        breakdown = analyze_question(subset, available[0], selected_responses)

    return {
        "record_count": int(len(subset)),
        "available_questions": [{"number": qf.number, "text": question_text(dataset.records, qf)} for qf in available],
        "breakdown": breakdown.to_dict() if breakdown is not None else None,
        "gender_distribution": gender_distribution(subset),
        "age_distribution": age_distribution(subset),
        "selection": selection.to_dict() if selection is not None else None,
    }
