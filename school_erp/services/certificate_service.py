from typing import Any, Dict, List, Optional
import re
import secrets
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import BadRequestError, ConflictError, NotFoundError
from school_erp.models import CertificateTemplate, IssuedCertificate, Staff, Student
from school_erp.schemas.certificate.requests import (
    BulkGenerateRequest, CertificateGenerateRequest, TemplateCreateRequest,
)
from school_erp.utils.dates import today, utcnow

logger = logging.getLogger(__name__)


def certificate_prefix(year: int) -> str:
    return f"CERT-{year}-"


def verification_code() -> str:
    return secrets.token_hex(8).upper()


class CertificateService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # Templates

    async def list_templates(self, school_code: str, certificate_type: Optional[str] = None) -> List[CertificateTemplate]:
        query = select(CertificateTemplate).where(
            CertificateTemplate.school_code == school_code,
            CertificateTemplate.is_active.is_(True),
        )
        if certificate_type:
            query = query.where(CertificateTemplate.certificate_type == certificate_type)
        result = await self.db.execute(query.order_by(CertificateTemplate.name))
        return list(result.scalars().all())

    async def create_template(self, school_code: str, data: TemplateCreateRequest) -> CertificateTemplate:
        template = CertificateTemplate(
            school_code=school_code,
            name=data.name.strip(),
            certificate_type=data.certificate_type,
            content=data.content,
            fields=[f.strip() for f in data.fields if f.strip()],
        )
        self.db.add(template)
        await self.db.commit()
        return template

    async def get_template(self, school_code: str, template_id: uuid.UUID) -> CertificateTemplate:
        template = (await self.db.execute(
            select(CertificateTemplate).where(
                CertificateTemplate.id == template_id,
                CertificateTemplate.school_code == school_code,
                CertificateTemplate.is_active.is_(True),
            )
        )).scalar_one_or_none()
        if template is None:
            raise NotFoundError("Certificate template not found")
        return template

    async def delete_template(self, school_code: str, template_id: uuid.UUID) -> None:
        template = await self.get_template(school_code, template_id)
        template.is_active = False
        await self.db.commit()

    # Issuing

    async def _next_sequence(self, school_code: str, year: int) -> int:
        prefix = certificate_prefix(year)
        numbers = (await self.db.execute(
            select(IssuedCertificate.certificate_number).where(
                IssuedCertificate.school_code == school_code,
                IssuedCertificate.certificate_number.like(f"{prefix}%"),
            )
        )).scalars().all()
        highest = 0
        for number in numbers:
            match = re.fullmatch(rf"{re.escape(prefix)}(\d+)", number)
            if match:
                highest = max(highest, int(match.group(1)))
        return highest + 1

    async def _recipient_name(self, school_code: str, recipient_type: str,
                              recipient_id: Optional[uuid.UUID]) -> Optional[str]:
        if recipient_id is None:
            return None
        model = Student if recipient_type == "student" else Staff
        person = (await self.db.execute(
            select(model).where(model.id == recipient_id, model.school_code == school_code)
        )).scalar_one_or_none()
        if person is None:
            raise NotFoundError(f"{recipient_type.capitalize()} not found")
        return person.full_name

    def _build(self, school_code: str, template: CertificateTemplate, recipient_type: str,
               recipient_id: Optional[uuid.UUID], recipient_name: str, number: str,
               data: Dict[str, Any], issued_by: str) -> IssuedCertificate:
        return IssuedCertificate(
            school_code=school_code,
            template_id=template.id,
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            recipient_name=recipient_name,
            certificate_number=number,
            verification_code=verification_code(),
            certificate_data={"template_name": template.name, **data},
            status="ISSUED",
            issued_by=issued_by,
            issued_at=utcnow(),
        )

    async def generate(self, school_code: str, data: CertificateGenerateRequest, issued_by: str) -> IssuedCertificate:
        template = await self.get_template(school_code, data.template_id)
        name = data.recipient_name or await self._recipient_name(school_code, data.recipient_type, data.recipient_id)
        if not name:
            raise BadRequestError("recipient_name or recipient_id is required")

        year = today().year
        number = data.certificate_number or f"{certificate_prefix(year)}{await self._next_sequence(school_code, year):05d}"
        certificate = self._build(
            school_code, template, data.recipient_type, data.recipient_id, name, number, data.data, issued_by
        )
        self.db.add(certificate)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(f"Certificate number {number} already exists")
        logger.info(f"{school_code}: certificate {number} issued to {name}")
        return certificate

    async def bulk_generate(self, school_code: str, data: BulkGenerateRequest, issued_by: str) -> Dict[str, Any]:
        """
        Issue one certificate per row. `field_mapping` maps template fields to
        row columns; rows without a recipient name or with a mapped column
        missing are reported and skipped.
        """
        template = await self.get_template(school_code, data.template_id)
        mapping = data.field_mapping or {field: field for field in (template.fields or [])}

        year = today().year
        sequence = await self._next_sequence(school_code, year)
        seen_numbers = set()
        issued, errors = [], []
        for index, row in enumerate(data.rows, start=1):
            row_errors = []
            name = str(row.get(data.name_column) or "").strip()
            if not name:
                row_errors.append(f"Missing recipient name in column '{data.name_column}'")

            values = {}
            for field, column in mapping.items():
                if column not in row:
                    row_errors.append(f"Column '{column}' not found for field '{field}'")
                else:
                    values[field] = row[column]

            number = None
            if data.number_column and row.get(data.number_column):
                number = str(row[data.number_column]).strip()
                if number in seen_numbers:
                    row_errors.append(f"Duplicate certificate number {number} in upload")

            if row_errors:
                errors.append({"row": index, "errors": row_errors})
                continue

            if number is None:
                number = f"{certificate_prefix(year)}{sequence:05d}"
                sequence += 1
            seen_numbers.add(number)
            certificate = self._build(school_code, template, template.certificate_type, None, name, number, values, issued_by)
            self.db.add(certificate)
            issued.append(certificate)

        if issued:
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                raise ConflictError("One or more certificate numbers already exist")

        logger.info(f"{school_code}: bulk certificates issued={len(issued)} failed={len(errors)}")
        return {
            "issued": len(issued),
            "failed": len(errors),
            "certificates": [
                {"id": c.id, "recipient_name": c.recipient_name, "certificate_number": c.certificate_number}
                for c in issued
            ],
            "errors": errors,
        }

    async def list_issued(
        self,
        school_code: str,
        recipient_type: Optional[str] = None,
        recipient_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None
    ) -> List[IssuedCertificate]:
        query = select(IssuedCertificate).where(IssuedCertificate.school_code == school_code)
        if recipient_type:
            query = query.where(IssuedCertificate.recipient_type == recipient_type)
        if recipient_id:
            query = query.where(IssuedCertificate.recipient_id == recipient_id)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(
                func.lower(IssuedCertificate.recipient_name).like(pattern)
                | func.lower(IssuedCertificate.certificate_number).like(pattern)
            )
        result = await self.db.execute(query.order_by(IssuedCertificate.issued_at.desc()))
        return list(result.unique().scalars().all())

    async def verify(self, code: str) -> IssuedCertificate:
        certificate = (await self.db.execute(
            select(IssuedCertificate).where(IssuedCertificate.verification_code == code.strip().upper())
        )).unique().scalar_one_or_none()
        if certificate is None:
            raise NotFoundError("Certificate not found")
        return certificate
