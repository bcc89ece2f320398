"""Instruction text sent with every oracle call.

Composition is order dependent (file mapping, then locked context, then the call
scope), so it is kept in one place and out of the review core.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from stratareview.domain.model import Domain, OracleCall
from stratareview.domain.review.merge import OPTIONAL_OUTPUT_KEYS, REQUIRED_OUTPUT_KEYS
from stratareview.domain.review.service import ADDITIONAL_EVIDENCE_KEY

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping, Sequence

    from stratareview.domain.model import Target

ORACLE_MODES: Mapping[OracleCall, str] = {
    OracleCall.INTAKE: "step0_only",
    OracleCall.LEVY: "levy",
    OracleCall.BALANCE_SHEET: "phase4",
    OracleCall.EXPENSES: "expenses",
    OracleCall.EXPENSES_ADDITIONAL: "expenses_additional",
    OracleCall.COMPLIANCE: "compliance",
    OracleCall.TARGETED_REVERIFY: "aiAttempt",
}

TARGET_PHASES: Mapping[Domain, str] = {
    Domain.LEVY: "levy",
    Domain.BALANCE_SHEET: "phase4",
    Domain.EXPENSES: "expenses",
    Domain.COMPLIANCE: "compliance",
}

_CALL_LABELS: Mapping[OracleCall, str] = {
    OracleCall.LEVY: "Phase 2 (Levy Reconciliation)",
    OracleCall.BALANCE_SHEET: "Phase 4 (Balance Sheet Verification)",
    OracleCall.EXPENSES: "Phase 3 (Expenses Vouching)",
    OracleCall.EXPENSES_ADDITIONAL: "Phase 3 (Expenses Vouching, additional evidence)",
    OracleCall.COMPLIANCE: "Phase 5 (Statutory Compliance)",
    OracleCall.TARGETED_REVERIFY: "Targeted re-verification",
}

_CALL_NOTES: Mapping[OracleCall, str] = {
    OracleCall.BALANCE_SHEET: (
        "Look up line_item and bs_amount in the LOCKED bs_extract; take supporting_amount "
        "from the supporting evidence. Do not re-read the Balance Sheet."
    ),
    OracleCall.COMPLIANCE: (
        "Use intake_summary.registered_for_gst from the LOCKED context. When it is false or "
        "absent, report gst_reconciliation with every amount set to 0."
    ),
    OracleCall.EXPENSES_ADDITIONAL: (
        "Vouch only against files marked [ADDITIONAL]. Add them to document_register and "
        "report re-vouched or new samples in expense_samples_additional, keeping GL_ID."
    ),
    OracleCall.TARGETED_REVERIFY: (
        "Re-verify ONLY the target items listed below, using [ADDITIONAL] files as new "
        "evidence. Return one resolution table row per target: item, issue_identified, "
        "ai_attempt_conduct, result, status."
    ),
}


def file_manifest(names: Sequence[str], additional: Collection[int] = ()) -> str:
    """One line per attached file, in attachment order (1-based)."""

    return "\n".join(
        f"File Part {index}: {name}{' [ADDITIONAL]' if index - 1 in additional else ''}"
        for index, name in enumerate(names, start=1)
    )


def return_keys(call: OracleCall) -> str:
    keys = sorted(REQUIRED_OUTPUT_KEYS[call] | OPTIONAL_OUTPUT_KEYS.get(call, frozenset()))
    return " and ".join(f'"{key}"' for key in keys)


def _target_lines(targets: Sequence[Target]) -> str:
    return "\n".join(
        f"- [{TARGET_PHASES[target.domain]}:{target.item_id}] {target.description}"
        for target in targets
    )


def build_instruction(
    call: OracleCall,
    *,
    manifest: str,
    locked_context: Mapping[str, object] | None,
    targets: Sequence[Target] = (),
) -> str:
    header = (
        "ATTACHED FILE MAPPING (strictly map the uploaded files to these names):\n"
        f"{manifest}\n"
    )
    if call is OracleCall.INTAKE:
        return (
            f"{header}\n*** STEP 0 ONLY - DOCUMENT INTAKE ***\nINSTRUCTIONS:\n"
            '1. Map "File Part 1" to the first name above, "File Part 2" to the second, etc.\n'
            "2. Document_Origin_Name MUST match the file name exactly.\n"
            f"3. Return ONLY {return_keys(call)}. No other keys.\n"
        )

    context_json = json.dumps(locked_context or {}, ensure_ascii=False, sort_keys=True)
    lines = [
        header,
        "*** LOCKED STEP 0 OUTPUT (DO NOT RE-EXTRACT - USE AS-IS) ***",
        context_json,
        "",
        f"*** {ORACLE_MODES[call].upper()} ONLY ***",
        "INSTRUCTIONS:",
        "1. Use the LOCKED context above. Do not re-extract document_register or intake_summary.",
        f"2. Execute {_CALL_LABELS[call]} ONLY.",
        f"3. Return ONLY {return_keys(call)}. No other keys.",
    ]
    note = _CALL_NOTES.get(call)
    if note:
        lines.append(f"4. {note}")
    if targets:
        lines.extend(("", "TARGETS:", _target_lines(targets)))
    return "\n".join(lines) + "\n"
