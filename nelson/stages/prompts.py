"""Versioned prompt templates and the binder that renders them.

Each template declares the closed set of variable names it understands.
:func:`bind` fails with :class:`~nelson.errors.MissingVariable` when one of
them has no value, and silently ignores any variable the template does not
declare.  Literal JSON braces in template text are doubled for
``str.format``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from nelson.errors import MissingVariable


class TemplateId(str, Enum):
    CLASSIFICATION = "classification"
    CONTEXT_EXTRACTION = "context_extraction"
    DIAGNOSIS = "diagnosis"
    TREATMENT = "treatment"
    SAFETY = "safety"


@dataclass(frozen=True)
class PromptTemplate:
    template_id: TemplateId
    version: str
    variables: frozenset[str]
    text: str


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

CLASSIFICATION_PROMPT = """You are a medical query classifier for Nelson-GPT, a pediatric diagnostic assistant.

Analyze this query and classify it:
Query: "{query}"

Classify into ONE category:
- SYMPTOM_ASSESSMENT: Patient describing symptoms
- DIAGNOSIS_REQUEST: Asking for diagnosis
- TREATMENT_PLAN: Asking for treatment
- MEDICATION_QUERY: Questions about medications
- GUIDELINE_REFERENCE: Asking for clinical guidelines
- GENERAL_EDUCATION: General medical education

Also determine:
- Urgency: routine, urgent, or emergency
- Specialty: pediatrics, neonatology, infectious_disease, etc.

Respond ONLY with a JSON object:
{{
  "category": "CATEGORY_NAME",
  "confidence": 0.95,
  "urgency": "routine",
  "specialty": "pediatrics"
}}
"""

# ---------------------------------------------------------------------------
# Context extraction
# ---------------------------------------------------------------------------

CONTEXT_EXTRACTION_PROMPT = """Extract medical information from this pediatric query:
Query: "{query}"

Extract:
1. Symptoms mentioned
2. Age group (newborn, infant, toddler, preschool, school-age, adolescent, or general if unknown)
3. Severity (mild, moderate, severe)
4. Any contraindications mentioned
5. Relevant medical history

Respond ONLY with a JSON object:
{{
  "symptoms": ["symptom1", "symptom2"],
  "ageGroup": "infant",
  "severity": "mild|moderate|severe",
  "contraindications": ["contraindication1"],
  "relevantHistory": ["history1"]
}}
"""

# ---------------------------------------------------------------------------
# Differential diagnosis
# ---------------------------------------------------------------------------

DIAGNOSIS_PROMPT = """You are an expert pediatric diagnostician using Nelson Textbook of Pediatrics.

Patient Information:
- Age Group: {age_group}
- Symptoms: {symptoms}
- Medical Context: {medical_context}

Medical Literature References:
{literature}

Generate a differential diagnosis with:
1. Most likely diagnosis (primary)
2. Alternative diagnoses ranked by probability
3. Red flags requiring immediate attention
4. Recommended investigations

Respond ONLY with a JSON object:
{{
  "primaryDiagnosis": "diagnosis_name",
  "alternatives": [
    {{"diagnosis": "name", "probability": 0.85, "reasoning": "why this is likely"}}
  ],
  "redFlags": ["flag1", "flag2"],
  "investigations": ["test1", "test2"]
}}
"""

# ---------------------------------------------------------------------------
# Treatment plan
# ---------------------------------------------------------------------------

TREATMENT_PROMPT = """You are a pediatric treatment specialist using Nelson Textbook of Pediatrics.

Diagnosis: {diagnosis}
Age Group: {age_group}
Patient Context: {medical_context}

Medical Literature References:
{literature}

Generate a comprehensive treatment plan:
1. First-line treatment with age-appropriate dosing
2. Alternative treatments
3. Monitoring parameters
4. Escalation criteria
5. Parental education points

Respond ONLY with a JSON object:
{{
  "firstLine": "treatment description with dosing",
  "alternatives": ["alt1", "alt2"],
  "dosing": {{"medication": "dose per kg or age-based"}},
  "monitoring": ["parameter1", "parameter2"],
  "escalationCriteria": ["criterion1"],
  "parentalEducation": ["point1"]
}}
"""

# ---------------------------------------------------------------------------
# Safety validation
# ---------------------------------------------------------------------------

SAFETY_PROMPT = """Validate the safety of this pediatric medical response:

Query: {query}
Diagnosis: {diagnosis}
Treatment: {treatment}

Check for:
1. Contraindications
2. Drug interactions
3. Age-appropriateness
4. Dosing errors
5. Missing safety considerations

Respond ONLY with a JSON object:
{{
  "isSafe": true,
  "warnings": ["warning1"],
  "requiresEscalation": false
}}
"""

# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

TEMPLATES: dict[TemplateId, PromptTemplate] = {
    template.template_id: template
    for template in (
        PromptTemplate(TemplateId.CLASSIFICATION, "v1", frozenset({"query"}), CLASSIFICATION_PROMPT),
        PromptTemplate(
            TemplateId.CONTEXT_EXTRACTION, "v1", frozenset({"query"}), CONTEXT_EXTRACTION_PROMPT
        ),
        PromptTemplate(
            TemplateId.DIAGNOSIS,
            "v1",
            frozenset({"symptoms", "age_group", "medical_context", "literature"}),
            DIAGNOSIS_PROMPT,
        ),
        PromptTemplate(
            TemplateId.TREATMENT,
            "v1",
            frozenset({"diagnosis", "age_group", "medical_context", "literature"}),
            TREATMENT_PROMPT,
        ),
        PromptTemplate(
            TemplateId.SAFETY, "v1", frozenset({"query", "diagnosis", "treatment"}), SAFETY_PROMPT
        ),
    )
}


def get_template(template_id: TemplateId | str) -> PromptTemplate:
    """Returns the registered template for *template_id*."""
    return TEMPLATES[TemplateId(template_id)]


def bind(template_id: TemplateId | str, variables: Mapping[str, Any]) -> str:
    """Renders a registered template against *variables*.

    Args:
        template_id: Which template to render.
        variables:   Values keyed by variable name.  Undeclared names are
            ignored; ``None`` counts as unbound.

    Returns:
        The final prompt string.  Identical inputs always render identically.

    Raises:
        MissingVariable: if a declared variable has no bound value.
    """
    template = get_template(template_id)
    bound: dict[str, str] = {}
    for name in sorted(template.variables):
        value = variables.get(name)
        if value is None:
            raise MissingVariable(template.template_id.value, name)
        bound[name] = str(value)
    return template.text.format(**bound)
