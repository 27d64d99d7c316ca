"""Deterministic motion skeletons.

``render_motion(motion_type, facts)`` maps a motion type (or one of its aliases) to a markdown
template and fills it from ``facts``. Missing facts stay as bracketed placeholders so the
attorney can see what still needs to be supplied. No network access and no model calls.
"""

from __future__ import annotations

import textwrap
from typing import Any, Callable, Mapping

from lexagent.logging import get_logger

logger = get_logger(__name__)

_SIGNATURE = "Respectfully submitted,\n[Attorney Signature Block]"
_TEMPLATE_NOTE = (
    "**Note:** This is a template. Customize all bracketed sections with case-specific facts, "
    "applicable citations, and legal arguments. Verify all citations before filing."
)


def _fact(facts: Mapping[str, Any], key: str, placeholder: str) -> str:
    value = facts.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return placeholder
    return str(value).strip()


def _fill(template: str, **values: str) -> str:
    return textwrap.dedent(template).format(signature=_SIGNATURE, note=_TEMPLATE_NOTE, **values)


def _suppress(facts: Mapping[str, Any]) -> str:
    defendant = _fact(facts, "defendant", "[Defendant Name]")
    grounds = _fact(facts, "grounds", "[constitutional violation, Fourth Amendment, improper search, etc.]")
    incident_date = _fact(facts, "incident_date", "[Date]")
    return _fill(
        """\
        ## Sample Motion Language: Motion to Suppress Evidence

        **[Court Name] - [Division]**

        **[Prosecuting Authority]**
        **v.**
        **{defendant}, Defendant**

        Docket No. [___________]

        ---

        ### DEFENDANT'S MOTION TO SUPPRESS EVIDENCE

        NOW COMES the Defendant, {defendant}, by and through undersigned counsel, and respectfully
        moves this Honorable Court to suppress all evidence obtained as a result of [describe the
        unlawful conduct] on {incident_date}, and in support thereof states:

        #### I. INTRODUCTION

        This motion seeks suppression of evidence obtained in violation of the Defendant's rights
        under the Fourth Amendment to the United States Constitution and [applicable state
        constitutional provision]. The [stop/search/seizure] lacked [probable cause/reasonable
        suspicion/valid warrant].

        #### II. FACTUAL BACKGROUND

        [Insert date, time and location; officers involved; basis for initial contact; actions
        taken; evidence seized.]

        #### III. LEGAL STANDARD

        The Fourth Amendment protects against unreasonable searches and seizures. The prosecution
        bears the burden of proving the lawfulness of the [stop/search/seizure]. *[Case Name]*,
        [Citation].

        #### IV. ARGUMENT

        **A. {grounds}**

        [Relevant legal standard, application of facts to law, supporting citations.]

        **B. The Exclusionary Rule Applies**

        Evidence obtained in violation of constitutional rights must be excluded. *Mapp v. Ohio*,
        367 U.S. 643 (1961).

        #### V. CONCLUSION

        The Defendant respectfully requests that this Honorable Court:

        1. Schedule an evidentiary hearing on this Motion;
        2. ALLOW the Motion and suppress all evidence obtained as a result of the unlawful
           [stop/search/seizure];
        3. Grant such other and further relief as justice may require.

        {signature}

        ---

        ### CERTIFICATE OF SERVICE

        I hereby certify that a true copy of the foregoing Motion was served upon [Prosecutor Name]
        via [method] on [date].

        ---

        {note}
        """,
        defendant=defendant, grounds=grounds, incident_date=incident_date,
    )


def _dismiss(facts: Mapping[str, Any]) -> str:
    defendant = _fact(facts, "defendant", "[Defendant Name]")
    grounds = _fact(facts, "grounds", "[lack of jurisdiction, defective complaint, etc.]")
    return _fill(
        """\
        ## Sample Motion Language: Motion to Dismiss

        ### DEFENDANT'S MOTION TO DISMISS

        NOW COMES the Defendant, {defendant}, and respectfully moves this Honorable Court to
        dismiss the complaint on the grounds that {grounds}.

        #### LEGAL STANDARD

        A motion to dismiss challenges the legal sufficiency of the complaint. The Court accepts
        well-pleaded facts as true but need not accept legal conclusions. *[Applicable Standard Case]*

        #### ARGUMENT

        [Explain why dismissal is warranted: legal deficiency in the complaint, lack of subject
        matter jurisdiction, expired limitations period, failure to state a claim.]

        #### CONCLUSION

        The Defendant respectfully requests that this Court ALLOW this Motion and dismiss the
        complaint.

        {signature}
        """,
        defendant=defendant, grounds=grounds,
    )


def _continue(facts: Mapping[str, Any]) -> str:
    moving_party = _fact(facts, "moving_party", "[Defendant/Prosecution]")
    reason = _fact(
        facts,
        "reason",
        "[good cause: need for additional discovery, scheduling conflict, witness unavailability, etc.]",
    )
    hearing_date = _fact(facts, "current_hearing_date", "[Current Hearing Date]")
    return _fill(
        """\
        ## Sample Motion Language: Motion to Continue

        ### MOTION TO CONTINUE

        NOW COMES the {moving_party} and respectfully requests that this Honorable Court continue
        the hearing currently scheduled for {hearing_date} to a date certain, and states:

        1. Good cause exists for this continuance due to {reason}.
        2. [Opposing party] [does/does not] object to this continuance.
        3. This is the [first/second] request for continuance in this matter.

        WHEREFORE, the {moving_party} respectfully requests that this Court ALLOW this Motion and
        continue the hearing to [proposed date].

        {signature}
        """,
        moving_party=moving_party, reason=reason, hearing_date=hearing_date,
    )


def _discovery(facts: Mapping[str, Any]) -> str:
    items = _fact(facts, "items_requested", "[police reports, witness statements, expert reports, etc.]")
    return _fill(
        """\
        ## Sample Motion Language: Motion for Discovery

        ### DEFENDANT'S MOTION FOR DISCOVERY

        NOW COMES the Defendant and respectfully requests that this Court order the prosecution to
        provide the following discovery materials:

        1. **Police Reports:** All incident, investigation and supplemental reports.
        2. **Witness Information:** Names and statements of all witnesses to be called.
        3. **Expert Reports:** All expert reports and qualifications.
        4. **Physical Evidence:** Access to inspect and test all physical evidence, including {items}.
        5. **Exculpatory Material:** *Brady v. Maryland*, 373 U.S. 83 (1963).
        6. **Impeachment Evidence:** *Giglio v. United States*, 405 U.S. 150 (1972).

        #### LEGAL BASIS

        The Defendant is entitled to discovery under [applicable discovery rule]. Due process
        requires disclosure of all material exculpatory evidence.

        {signature}
        """,
        items=items,
    )


def _in_limine(facts: Mapping[str, Any]) -> str:
    evidence = _fact(facts, "evidence", "[hearsay, prior bad acts, prejudicial evidence, etc.]")
    grounds = _fact(facts, "grounds", "[relevance, prejudice, hearsay, etc.]")
    return _fill(
        """\
        ## Sample Motion Language: Motion in Limine

        ### DEFENDANT'S MOTION IN LIMINE TO EXCLUDE EVIDENCE

        NOW COMES the Defendant and respectfully moves this Court to exclude {evidence} from
        evidence at trial on the grounds that {grounds}.

        #### LEGAL STANDARD

        Evidence is admissible only if relevant and not unfairly prejudicial. The Court must
        exclude evidence whose probative value is substantially outweighed by the danger of unfair
        prejudice. *[Applicable Evidence Rule]*

        #### CONCLUSION

        The Defendant respectfully requests that this Court ALLOW this Motion, exclude {evidence},
        and order that the excluded evidence not be referenced before the jury.

        {signature}
        """,
        evidence=evidence, grounds=grounds,
    )


def _generic(motion_type: str) -> str:
    return _fill(
        """\
        ## Sample Motion Language: {motion_type}

        ### [TITLE OF MOTION]

        NOW COMES the [Moving Party] and respectfully moves this Honorable Court to [describe relief
        sought], and in support thereof states:

        #### FACTUAL BACKGROUND

        [Insert relevant facts supporting the motion]

        #### LEGAL STANDARD

        [State the applicable legal standard and burden of proof]

        #### ARGUMENT

        [Present legal arguments with supporting citations]

        #### CONCLUSION

        WHEREFORE, the [Moving Party] respectfully requests that this Court ALLOW this Motion and
        grant [specific relief].

        {signature}

        ---

        **Note:** This is a generic template. Customize with case-specific facts, applicable law,
        and supporting citations.
        """,
        motion_type=motion_type,
    )


_RENDERERS: dict[str, Callable[[Mapping[str, Any]], str]] = {}
for _aliases, _fn in (
    (("suppress", "motion_to_suppress", "suppress_evidence"), _suppress),
    (("dismiss", "motion_to_dismiss"), _dismiss),
    (("continue", "motion_to_continue", "continuance"), _continue),
    (("discovery", "motion_for_discovery"), _discovery),
    (("exclude", "motion_in_limine", "exclude_evidence"), _in_limine),
):
    for _alias in _aliases:
        _RENDERERS[_alias] = _fn


def supported_motion_types() -> list[str]:
    return sorted(_RENDERERS)


def render_motion(motion_type: str, facts: Mapping[str, Any] | None = None) -> str:
    """Render a motion skeleton.

    Args:
        motion_type: A motion type or alias such as ``suppress`` or ``motion_in_limine``.
            Unknown types fall back to a generic skeleton titled with ``motion_type``.
        facts: Case facts. Recognized keys: ``defendant``, ``grounds``, ``incident_date``,
            ``moving_party``, ``reason``, ``current_hearing_date``, ``items_requested``,
            ``evidence``.

    Returns:
        Markdown text.
    """

    key = (motion_type or "").strip().lower().replace("-", "_").replace(" ", "_")
    facts = facts or {}
    renderer = _RENDERERS.get(key)
    logger.info("Rendering motion template", extra={"motion_type": key, "known": renderer is not None})
    if renderer is None:
        return _generic((motion_type or "").strip() or "Motion")
    return renderer(facts)
