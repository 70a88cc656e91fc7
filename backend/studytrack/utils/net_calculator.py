"""Exam net calculation for TYT/AYT practice tests.

Each subject has a fixed number of questions. A score is the triple
`{correct, wrong, blank}` which always sums to that number; the net is
`correct - wrong / 4`.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from ..errors import ValidationError

WRONG_PENALTY = 0.25
FIELDS = ('correct', 'wrong', 'blank')
EXAM_TYPES = ('TYT', 'AYT')
AYT_FIELDS = ('sozel', 'esit', 'sayisal')

TYT_SUBJECTS = [
    ('Türkçe', 40),
    ('Tarih', 5),
    ('Coğrafya', 5),
    ('Felsefe', 5),
    ('Din Kültürü', 5),
    ('Matematik', 30),
    ('Geometri', 10),
    ('Fizik', 7),
    ('Kimya', 7),
    ('Biyoloji', 6),
]

AYT_SUBJECTS = {
    'sozel': [
        ('Edebiyat', 40),
        ('Tarih', 11),
        ('Coğrafya', 11),
        ('Diğer', 18),
    ],
    'esit': [
        ('Edebiyat', 40),
        ('Matematik', 40),
    ],
    'sayisal': [
        ('Matematik', 40),
        ('Fizik', 14),
        ('Kimya', 13),
        ('Biyoloji', 13),
    ],
}


def validate_exam(exam_type: str, ayt_field: Optional[str]) -> None:
    """Check the exam type / AYT field pairing (field present iff AYT)."""
    if exam_type not in EXAM_TYPES:
        raise ValidationError(f'unknown exam type: {exam_type}')
    if exam_type == 'AYT':
        if not ayt_field:
            raise ValidationError('ayt_field is required for AYT')
        if ayt_field not in AYT_FIELDS:
            raise ValidationError(f'unknown AYT field: {ayt_field}')
    elif ayt_field is not None:
        raise ValidationError('ayt_field must be empty for TYT')


def subjects_for(exam_type: str, ayt_field: Optional[str] = None) -> List[tuple]:
    """Return the `(subject, max_questions)` table for an exam configuration."""
    validate_exam(exam_type, ayt_field)
    if exam_type == 'TYT':
        return list(TYT_SUBJECTS)
    return list(AYT_SUBJECTS[ayt_field])


def initial_scores(subjects: List[tuple]) -> Dict[str, dict]:
    """Every subject starts fully blank."""
    return {name: {'correct': 0, 'wrong': 0, 'blank': max_q} for name, max_q in subjects}


def net(score: dict) -> float:
    """`correct - 0.25 * wrong`; may be negative."""
    return score['correct'] - score['wrong'] * WRONG_PENALTY


def total_net(scores: Dict[str, dict]) -> float:
    return sum(net(s) for s in scores.values())


def format_net(value: float) -> str:
    """Two-place decimal string, as stored on saved snapshots."""
    return str(Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def reconcile(score: dict, field: str, value: int, max_questions: int) -> dict:
    """Return a new score after setting `field` to `value`.

    `blank` is always re-derived as `max_questions - correct - wrong`,
    clamped at 0. When `correct + wrong` alone overflows, the one of the
    two that was not edited is lowered. A `blank` edit can only shrink the
    answered questions: `wrong` is lowered first, then `correct`. The input
    dict is not modified.
    """
    if field not in FIELDS:
        raise ValidationError(f'unknown score field: {field}')
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f'{field} must be an integer')
    if value < 0 or value > max_questions:
        raise ValidationError(f'{field} must be between 0 and {max_questions}')

    new = {f: int(score.get(f, 0)) for f in FIELDS}
    if field == 'blank':
        answered = max_questions - value
        overflow = new['correct'] + new['wrong'] - answered
        if overflow > 0:
            cut = min(new['wrong'], overflow)
            new['wrong'] -= cut
            new['correct'] -= overflow - cut
    else:
        new[field] = value
        if new['correct'] + new['wrong'] > max_questions:
            other = 'wrong' if field == 'correct' else 'correct'
            new[other] = max_questions - value
    new['blank'] = max(0, max_questions - new['correct'] - new['wrong'])
    return new


def build_snapshot(exam_type: str, ayt_field: Optional[str], scores: Dict[str, dict]):
    """Validate raw `{subject: {correct, wrong}}` input and compute nets.

    Returns `(subject_scores, total_net)` where `subject_scores` maps each
    subject to `{correct, wrong, net}` and `total_net` is a decimal string.
    """
    table = dict(subjects_for(exam_type, ayt_field))
    subject_scores = {}
    for name, score in scores.items():
        if name not in table:
            raise ValidationError(f'unknown subject for {exam_type}: {name}')
        correct = int(score.get('correct', 0))
        wrong = int(score.get('wrong', 0))
        if correct < 0 or wrong < 0:
            raise ValidationError(f'{name}: counts must be >= 0')
        if correct + wrong > table[name]:
            raise ValidationError(f'{name}: correct + wrong exceeds {table[name]} questions')
        subject_scores[name] = {'correct': correct, 'wrong': wrong,
                                'net': net({'correct': correct, 'wrong': wrong})}
    return subject_scores, format_net(total_net(subject_scores))
