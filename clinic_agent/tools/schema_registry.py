"""
clinic_agent/tools/schema_registry.py
=====================================

Static catalog of every table the agent may read.

Each table is described once, at import time, by an immutable
``TableDescriptor``.  The catalog is what makes the query and aggregation
engines generic: they never contain per-table code, they only look up a
descriptor here and validate column names against it.

Type hints are free-form strings (``"DATE (보고서 날짜)"``) written for the
model.  The only hint the engines interpret is the ``TIMESTAMP`` prefix,
which switches date-range filters to full-day bounds.

Every table carries the tenant column ``clinic_id``.  It is listed in the
descriptors so the model can see it, but the engines add the tenant
predicate themselves.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

# Column every table is scoped on.
TENANT_COLUMN = "clinic_id"


@dataclass(frozen=True)
class TableDescriptor:
    """Metadata for one registered table.

    Attributes
    ----------
    name:
        Table name as it exists in the store.
    description:
        Human description shown to the model.
    columns:
        Read-only ``{column: type_hint}`` map in declaration order.
    date_column:
        Column that ``date_range`` filters and default ordering apply to.
    joins:
        Advisory hints naming related tables.  Never executed.
    """

    name: str
    description: str
    columns: Mapping[str, str]
    date_column: Optional[str] = None
    joins: Tuple[str, ...] = field(default_factory=tuple)

    def has_column(self, column: str) -> bool:
        return column in self.columns

    def is_timestamp(self, column: str) -> bool:
        """True when the column's type hint declares a timestamp."""
        return self.columns.get(column, "").upper().startswith("TIMESTAMP")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "description": self.description,
            "columns": dict(self.columns),
            "dateColumn": self.date_column,
            "joins": list(self.joins),
        }


def _table(name, description, columns, date_column=None, joins=()) -> TableDescriptor:
    return TableDescriptor(
        name=name,
        description=description,
        columns=MappingProxyType(dict(columns)),
        date_column=date_column,
        joins=tuple(joins),
    )


_TABLES = (
    _table(
        "daily_reports",
        "일일 보고서 - 매일의 리콜, 상담, 리뷰 현황을 기록",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "date": "DATE (보고서 날짜)",
            "recall_count": "INTEGER (리콜 환자 수)",
            "recall_booking_count": "INTEGER (리콜 예약 완료 수)",
            "consult_proceed": "INTEGER (상담 진행 수)",
            "consult_hold": "INTEGER (상담 보류 수)",
            "naver_review_count": "INTEGER (네이버 리뷰 수)",
            "special_notes": "TEXT (특이사항)",
            "created_at": "TIMESTAMP",
            "updated_at": "TIMESTAMP",
        },
        date_column="date",
    ),
    _table(
        "consult_logs",
        "상담 기록 - 개별 환자 상담 내역",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "date": "DATE (상담 날짜)",
            "patient_name": "TEXT (환자 이름)",
            "consult_content": "TEXT (상담 내용)",
            "consult_status": "TEXT (상담 상태: O=진행, X=보류)",
            "remarks": "TEXT (비고)",
            "created_at": "TIMESTAMP",
        },
        date_column="date",
    ),
    _table(
        "gift_logs",
        "선물 증정 기록 - 환자에게 제공한 선물 내역",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "date": "DATE (증정 날짜)",
            "patient_name": "TEXT (환자 이름)",
            "gift_type": "TEXT (선물 종류)",
            "quantity": "INTEGER (수량)",
            "naver_review": "TEXT (네이버 리뷰 작성 여부: O/X)",
            "notes": "TEXT (비고)",
            "created_at": "TIMESTAMP",
        },
        date_column="date",
    ),
    _table(
        "happy_call_logs",
        "해피콜 기록 - 치료 후 환자 만족도 확인 전화",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "date": "DATE (전화 날짜)",
            "patient_name": "TEXT (환자 이름)",
            "treatment": "TEXT (치료 내용)",
            "notes": "TEXT (통화 내용/메모)",
            "created_at": "TIMESTAMP",
        },
        date_column="date",
    ),
    _table(
        "cash_register_logs",
        "현금 출납 기록 - 일일 현금 잔액 관리",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "date": "DATE (기록 날짜)",
            "previous_balance": "INTEGER (전일 이월액)",
            "current_balance": "INTEGER (금일 잔액)",
            "balance_difference": "INTEGER (차액)",
            "notes": "TEXT (비고)",
            "created_at": "TIMESTAMP",
        },
        date_column="date",
    ),
    _table(
        "attendance_records",
        "출퇴근 기록 - 직원 근태 관리 (지각, 조퇴, 초과근무 포함)",
        {
            "id": "UUID (PK)",
            "user_id": "UUID (직원 ID, users 테이블 참조)",
            "clinic_id": "UUID (클리닉 ID)",
            "work_date": "DATE (근무 날짜)",
            "check_in_time": "TIMESTAMP (출근 시간)",
            "check_out_time": "TIMESTAMP (퇴근 시간)",
            "scheduled_start": "TIME (예정 출근 시간)",
            "scheduled_end": "TIME (예정 퇴근 시간)",
            "late_minutes": "INTEGER (지각 시간, 분 단위)",
            "early_leave_minutes": "INTEGER (조퇴 시간, 분 단위)",
            "overtime_minutes": "INTEGER (초과근무 시간, 분 단위)",
            "total_work_minutes": "INTEGER (총 근무 시간, 분 단위)",
            "status": (
                "TEXT (근태 상태: present=정상출근, late=지각, early_leave=조퇴, "
                "absent=결근, leave=연차, holiday=공휴일)"
            ),
            "notes": "TEXT (특이사항)",
            "is_manually_edited": "BOOLEAN (수동 수정 여부)",
            "created_at": "TIMESTAMP",
            "updated_at": "TIMESTAMP",
        },
        date_column="work_date",
        joins=["users(id, name, role, position)"],
    ),
    _table(
        "leave_requests",
        "연차/휴가 신청 기록",
        {
            "id": "UUID (PK)",
            "user_id": "UUID (신청 직원 ID)",
            "clinic_id": "UUID (클리닉 ID)",
            "leave_type": "TEXT (휴가 유형: annual=연차, half_am=오전반차, half_pm=오후반차, sick=병가)",
            "start_date": "DATE (시작일)",
            "end_date": "DATE (종료일)",
            "status": "TEXT (승인 상태: pending, approved, rejected)",
            "reason": "TEXT (사유)",
            "created_at": "TIMESTAMP",
        },
        date_column="start_date",
        joins=["users(id, name, role)"],
    ),
    _table(
        "users",
        "직원 정보",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "name": "TEXT (이름)",
            "email": "TEXT (이메일)",
            "role": "TEXT (역할: owner=대표원장, manager=실장/관리자, staff=일반직원)",
            "position": "TEXT (직책)",
            "status": "TEXT (상태: active, inactive, resigned)",
            "hire_date": "DATE (입사일)",
            "created_at": "TIMESTAMP",
        },
        date_column="hire_date",
    ),
    _table(
        "gift_inventory",
        "선물 재고 현황",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "name": "TEXT (선물 이름)",
            "stock": "INTEGER (현재 재고 수량)",
            "category_id": "INTEGER (카테고리 ID)",
            "created_at": "TIMESTAMP",
        },
    ),
    _table(
        "inventory_logs",
        "재고 입출고 기록",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "name": "TEXT (품목명)",
            "reason": "TEXT (입출고 사유)",
            "change": "INTEGER (변동 수량, 양수=입고, 음수=출고)",
            "old_stock": "INTEGER (이전 재고)",
            "new_stock": "INTEGER (변경 후 재고)",
            "timestamp": "TIMESTAMP (기록 시간)",
        },
        date_column="timestamp",
    ),
    _table(
        "recall_campaigns",
        "리콜 캠페인 - 리콜 환자 관리 캠페인",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "name": "TEXT (캠페인 이름)",
            "start_date": "DATE (시작일)",
            "end_date": "DATE (종료일)",
            "status": "TEXT (상태: active, completed, cancelled)",
            "total_patients": "INTEGER (총 환자 수)",
            "completed_patients": "INTEGER (완료된 환자 수)",
            "created_at": "TIMESTAMP",
        },
        date_column="start_date",
    ),
    _table(
        "recall_patients",
        "리콜 환자 목록 - 개별 환자 리콜 현황",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "campaign_id": "UUID (캠페인 ID)",
            "patient_name": "TEXT (환자 이름)",
            "phone": "TEXT (연락처)",
            "last_visit": "DATE (마지막 방문일)",
            "recall_date": "DATE (리콜 예정일)",
            "status": "TEXT (리콜 상태: pending, contacted, booked, completed, cancelled)",
            "contact_count": "INTEGER (연락 시도 횟수)",
            "booking_date": "DATE (예약 완료일)",
            "created_at": "TIMESTAMP",
        },
        date_column="recall_date",
    ),
    _table(
        "recall_contact_logs",
        "리콜 연락 기록 - 환자 연락 시도 이력",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "patient_id": "UUID (환자 ID)",
            "contact_type": "TEXT (연락 유형: phone, sms)",
            "result": "TEXT (연락 결과: answered, no_answer, busy, booked)",
            "notes": "TEXT (메모)",
            "created_at": "TIMESTAMP (연락 시간)",
        },
        date_column="created_at",
    ),
    _table(
        "announcements",
        "공지사항 게시판",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "user_id": "UUID (작성자 ID)",
            "title": "TEXT (제목)",
            "content": "TEXT (내용)",
            "is_pinned": "BOOLEAN (상단 고정 여부)",
            "created_at": "TIMESTAMP (작성일)",
        },
        date_column="created_at",
        joins=["users(id, name)"],
    ),
    _table(
        "tasks",
        "업무 할당 게시판",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "title": "TEXT (업무 제목)",
            "description": "TEXT (업무 설명)",
            "status": "TEXT (상태: pending, in_progress, completed)",
            "priority": "TEXT (우선순위: low, medium, high)",
            "due_date": "DATE (마감일)",
            "assigned_to": "UUID (담당자 ID)",
            "created_at": "TIMESTAMP",
        },
        date_column="due_date",
    ),
    _table(
        "vendor_contacts",
        "업체 연락처",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "company_name": "TEXT (업체명)",
            "category": "TEXT (카테고리)",
            "contact_name": "TEXT (담당자명)",
            "phone": "TEXT (연락처)",
            "notes": "TEXT (메모)",
            "created_at": "TIMESTAMP",
        },
    ),
    _table(
        "protocols",
        "진료 프로토콜",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "title": "TEXT (프로토콜 제목)",
            "category": "TEXT (카테고리)",
            "content": "TEXT (내용)",
            "is_published": "BOOLEAN (공개 여부)",
            "created_at": "TIMESTAMP",
            "updated_at": "TIMESTAMP",
        },
        date_column="created_at",
    ),
    _table(
        "employment_contracts",
        "근로계약서",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "user_id": "UUID (직원 ID)",
            "status": "TEXT (계약 상태: draft, active, expired, terminated)",
            "contract_start_date": "DATE (계약 시작일)",
            "contract_end_date": "DATE (계약 종료일)",
            "salary_type": "TEXT (급여 유형: monthly, hourly)",
            "created_at": "TIMESTAMP",
        },
        date_column="contract_start_date",
    ),
    _table(
        "employee_leave_balances",
        "직원 연차 잔액",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "user_id": "UUID (직원 ID)",
            "year": "INTEGER (연도)",
            "total_days": "DECIMAL (총 연차 일수)",
            "used_days": "DECIMAL (사용 연차 일수)",
            "remaining_days": "DECIMAL (잔여 연차 일수)",
            "created_at": "TIMESTAMP",
        },
        joins=["users(id, name)"],
    ),
    _table(
        "special_notes_history",
        "특이사항 히스토리 - 일일 보고서 특이사항 변경 이력",
        {
            "id": "UUID (PK)",
            "clinic_id": "UUID (클리닉 ID)",
            "report_date": "DATE (보고서 날짜, 특이사항이 속한 날짜)",
            "content": "TEXT (특이사항 내용)",
            "author_id": "UUID (작성자 ID)",
            "author_name": "TEXT (작성자 이름)",
            "is_past_date_edit": "BOOLEAN (과거 날짜 수정 여부)",
            "edited_at": "TIMESTAMP (실제 수정/작성 시점)",
            "created_at": "TIMESTAMP (생성 시간)",
        },
        date_column="report_date",
    ),
)

SCHEMA_REGISTRY: Mapping[str, TableDescriptor] = MappingProxyType(
    {table.name: table for table in _TABLES}
)


def get_table(table_name: Optional[str]) -> Optional[TableDescriptor]:
    """Return the descriptor for ``table_name`` or ``None`` if unregistered."""
    if not table_name:
        return None
    return SCHEMA_REGISTRY.get(table_name)


def describe(table_name: Optional[str] = None) -> Any:
    """Return schema metadata for one table or a condensed catalog.

    - Known ``table_name`` → ``{table_name: full descriptor}``.
    - Unknown ``table_name`` → an ``error`` payload listing valid tables.
      The model probes names freely, so this never raises.
    - No ``table_name`` → one entry per table with column names only
      (type hints are dropped to keep the payload small).
    """
    if table_name:
        table = get_table(table_name)
        if table is None:
            return {
                "error": f'Table "{table_name}" not found',
                "available_tables": list(SCHEMA_REGISTRY),
            }
        return {table.name: table.to_dict()}

    return [
        {
            "table": table.name,
            "description": table.description,
            "columns": list(table.columns),
            "dateColumn": table.date_column,
        }
        for table in SCHEMA_REGISTRY.values()
    ]


def table_summary_lines() -> List[str]:
    """One ``- name: description`` line per table, for the system prompt."""
    return [f"- {table.name}: {table.description}" for table in SCHEMA_REGISTRY.values()]
