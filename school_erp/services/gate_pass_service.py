from datetime import date
from typing import List, Optional
import re
import uuid
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import BadRequestError, ConflictError, NotFoundError
from school_erp.models import GatePass, School, Staff, Student
from school_erp.schemas.gate_pass.requests import GatePassCreateRequest
from school_erp.utils.dates import naive_utc, utcnow
from school_erp.utils.pdf import render_gate_pass

logger = logging.getLogger(__name__)

TIME_FORMAT = "%d-%m-%Y %H:%M"


class GatePassService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _next_number(self, school_code: str, year: int) -> str:
        prefix = f"GP-{year}-"
        numbers = (await self.db.execute(
            select(GatePass.pass_number).where(
                GatePass.school_code == school_code,
                GatePass.pass_number.like(f"{prefix}%"),
            )
        )).scalars().all()
        highest = 0
        for number in numbers:
            match = re.fullmatch(r"GP-\d{4}-(\d+)", number)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{prefix}{highest + 1:05d}"

    async def create(self, school_code: str, data: GatePassCreateRequest, issued_by: str) -> GatePass:
        name, class_name = data.person_name, None
        if data.person_type in ("student", "staff") and data.person_id is not None:
            model = Student if data.person_type == "student" else Staff
            person = (await self.db.execute(
                select(model).where(model.id == data.person_id, model.school_code == school_code)
            )).scalar_one_or_none()
            if person is None:
                raise NotFoundError(f"{data.person_type.capitalize()} not found")
            name = name or person.full_name
            if data.person_type == "student":
                class_name = f"{person.class_name}-{person.section}" if person.section else person.class_name
        if not name:
            raise BadRequestError("person_name or person_id is required")

        time_out = naive_utc(data.time_out) or utcnow()
        expected_return = naive_utc(data.expected_return)
        if expected_return and expected_return < time_out:
            raise BadRequestError("expected_return must be after time_out")

        gate_pass = GatePass(
            school_code=school_code,
            pass_number=await self._next_number(school_code, time_out.year),
            person_type=data.person_type,
            person_id=data.person_id,
            person_name=name,
            class_name=class_name,
            reason=data.reason.strip(),
            accompanied_by=data.accompanied_by,
            time_out=time_out,
            expected_return=expected_return,
            issued_by=issued_by,
            status="out",
        )
        self.db.add(gate_pass)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Gate pass number clash, retry the request")
        logger.info(f"{school_code}: gate pass {gate_pass.pass_number} issued for {name}")
        return gate_pass

    async def get(self, school_code: str, pass_id: uuid.UUID) -> GatePass:
        gate_pass = (await self.db.execute(
            select(GatePass).where(GatePass.id == pass_id, GatePass.school_code == school_code)
        )).scalar_one_or_none()
        if gate_pass is None:
            raise NotFoundError("Gate pass not found")
        return gate_pass

    async def list_passes(self, school_code: str, on: Optional[date] = None, status: Optional[str] = None,
                          person_type: Optional[str] = None) -> List[GatePass]:
        query = select(GatePass).where(GatePass.school_code == school_code)
        if status:
            query = query.where(GatePass.status == status)
        if person_type:
            query = query.where(GatePass.person_type == person_type)
        passes = list((await self.db.execute(query.order_by(GatePass.time_out.desc()))).scalars().all())
        if on:
            passes = [p for p in passes if p.time_out.date() == on]
        return passes

    async def mark_returned(self, school_code: str, pass_id: uuid.UUID) -> GatePass:
        gate_pass = await self.get(school_code, pass_id)
        if gate_pass.status == "returned":
            raise BadRequestError("Return already recorded for this gate pass")
        gate_pass.time_in = utcnow()
        gate_pass.status = "returned"
        await self.db.commit()
        return gate_pass

    async def render_pdf(self, school: School, pass_id: uuid.UUID) -> bytes:
        gate_pass = await self.get(school.school_code, pass_id)
        rows = [
            ("Name", gate_pass.person_name),
            ("Type", gate_pass.person_type.capitalize()),
        ]
        if gate_pass.class_name:
            rows.append(("Class", gate_pass.class_name))
        rows.extend([
            ("Reason", gate_pass.reason),
            ("Accompanied by", gate_pass.accompanied_by or "-"),
            ("Time out", gate_pass.time_out.strftime(TIME_FORMAT)),
            ("Expected return", gate_pass.expected_return.strftime(TIME_FORMAT) if gate_pass.expected_return else "-"),
            ("Time in", gate_pass.time_in.strftime(TIME_FORMAT) if gate_pass.time_in else "-"),
            ("Issued by", gate_pass.issued_by or "-"),
        ])
        return render_gate_pass(school.name, school.address, gate_pass.pass_number, rows, gate_pass.status)
