"""
JSON-LD extractor.

Extracts job information from structured JSON-LD data (Schema.org JobPosting).
"""

import json
import logging
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

from core import salary_validator
from .fields import FieldResult, CONFIDENCE_SCORES, merge_fields

logger = logging.getLogger(__name__)

# schema.org unitText values accepted as annual pay
ANNUAL_UNITS = ('', 'YEAR')


class JSONLDExtractor:
    """Extracts job data from JSON-LD structured data."""

    def extract(self, soup: BeautifulSoup) -> Dict[str, FieldResult]:
        """
        Extract job fields from every JobPosting block on the page.

        Returns:
            Dictionary mapping field names to FieldResult objects
        """
        fields: Dict[str, FieldResult] = {}

        for script in soup.find_all('script', type='application/ld+json'):
            try:
                data = json.loads(script.string or '')
            except (json.JSONDecodeError, TypeError) as e:
                logger.debug(f"[jsonld] Failed to parse JSON-LD: {e}")
                continue

            for item in self._flatten_jsonld(data):
                if self._is_job_posting(item):
                    merge_fields(fields, self._extract_job_posting(item))

        return fields

    def _flatten_jsonld(self, data: Any) -> List[Dict]:
        """Flatten JSON-LD structure to list of items."""
        items = []

        if isinstance(data, dict):
            if self._is_job_posting(data):
                items.append(data)
            elif isinstance(data.get('@graph'), list):
                items.extend([item for item in data['@graph'] if isinstance(item, dict)])
            elif isinstance(data.get('itemListElement'), list):
                for element in data['itemListElement']:
                    if isinstance(element, dict) and isinstance(element.get('item'), dict):
                        items.append(element['item'])
        elif isinstance(data, list):
            items.extend([item for item in data if isinstance(item, dict)])

        return items

    def _is_job_posting(self, item: Dict) -> bool:
        item_type = item.get('@type', '')
        if isinstance(item_type, str):
            return 'JobPosting' in item_type
        elif isinstance(item_type, list):
            return any('JobPosting' in str(t) for t in item_type)
        return False

    def _field(self, value: Any, raw: Any = None) -> FieldResult:
        return FieldResult(
            value=value,
            source='jsonld',
            confidence=CONFIDENCE_SCORES['jsonld'],
            raw_snippet=str(raw if raw is not None else value)[:200]
        )

    def _extract_job_posting(self, job_data: Dict) -> Dict[str, FieldResult]:
        """Extract fields from JobPosting JSON-LD."""
        fields = {}

        if job_data.get('title'):
            fields['title'] = self._field(str(job_data['title']).strip())

        employer = None
        org = job_data.get('hiringOrganization')
        if isinstance(org, dict):
            employer = org.get('name') or org.get('legalName')
        elif isinstance(org, str):
            employer = org
        if employer:
            fields['company_name'] = self._field(str(employer).strip())

        location = self._location(job_data.get('jobLocation'))
        if location:
            fields['location'] = self._field(location)

        if str(job_data.get('jobLocationType', '')).upper() == 'TELECOMMUTE':
            fields['remote_type'] = self._field('remote', job_data['jobLocationType'])

        if job_data.get('description'):
            desc = BeautifulSoup(str(job_data['description']), 'lxml').get_text('\n').strip()
            if desc:
                fields['description'] = self._field(desc, desc[:500])

        for key in ('qualifications', 'experienceRequirements', 'skills'):
            if isinstance(job_data.get(key), str) and job_data[key].strip():
                fields['requirements'] = self._field(job_data[key].strip())
                break
        if isinstance(job_data.get('responsibilities'), str):
            fields['responsibilities'] = self._field(job_data['responsibilities'].strip())
        if isinstance(job_data.get('jobBenefits'), str):
            fields['benefits'] = self._field(job_data['jobBenefits'].strip())

        fields.update(self._salary(job_data.get('baseSalary')))

        for key, name in (('datePosted', 'posted_on'), ('validThrough', 'deadline')):
            if job_data.get(key):
                date_value = self._parse_date(str(job_data[key]))
                if date_value:
                    fields[name] = self._field(date_value, job_data[key])

        if job_data.get('employmentType'):
            employment = job_data['employmentType']
            if isinstance(employment, list):
                employment = ', '.join(str(e) for e in employment)
            fields['employment_type'] = self._field(str(employment))

        return {k: v for k, v in fields.items() if v.is_valid()}

    @staticmethod
    def _location(loc: Any) -> Optional[str]:
        if isinstance(loc, list):
            loc = loc[0] if loc else None
        if isinstance(loc, str):
            return loc.strip() or None
        if not isinstance(loc, dict):
            return None

        addr = loc.get('address')
        if isinstance(addr, dict):
            country = addr.get('addressCountry')
            if isinstance(country, dict):
                country = country.get('name')
            parts = [addr.get('addressLocality'), addr.get('addressRegion'), country]
            return ', '.join(str(p) for p in parts if p) or None
        if isinstance(addr, str):
            return addr.strip() or None
        return loc.get('name')

    def _salary(self, base_salary: Any) -> Dict[str, FieldResult]:
        """baseSalary -> salary fields, only when the range validates"""
        if not isinstance(base_salary, dict):
            return {}
        value = base_salary.get('value')
        if isinstance(value, dict):
            low = value.get('minValue', value.get('value'))
            high = value.get('maxValue')
            unit = value.get('unitText') or base_salary.get('unitText')
        else:
            low, high, unit = value, None, base_salary.get('unitText')

        if str(unit or '').upper() not in ANNUAL_UNITS:
            logger.debug(f"[jsonld] Ignoring non-annual baseSalary ({unit})")
            return {}

        checked = salary_validator.normalize(low, high, base_salary.get('currency'))
        if not checked.valid:
            logger.debug(f"[jsonld] Ignoring baseSalary: {checked.reason}")
            return {}

        fields = {'salary_currency': self._field(checked.currency, base_salary)}
        if checked.min is not None:
            fields['salary_min'] = self._field(checked.min, base_salary)
        if checked.max is not None:
            fields['salary_max'] = self._field(checked.max, base_salary)
        return fields

    @staticmethod
    def _parse_date(date_text: str) -> Optional[str]:
        try:
            return date_parser.parse(date_text).strftime('%Y-%m-%d')
        except (ValueError, OverflowError) as e:
            logger.debug(f"[jsonld] Failed to parse date '{date_text}': {e}")
            return None
