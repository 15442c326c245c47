from collections import Counter
from typing import Any

DEFAULT_SCOPE = "main, .govuk-main-wrapper, #main-content, body"
AFFECTED_ELEMENTS_SHOWN = 3
HTML_SNIPPET_CHARS = 100

GUIDANCE_LINKS = (
    (
        "Understanding WCAG 2.1",
        "https://www.gov.uk/service-manual/helping-people-to-use-your-service/understanding-wcag",
    ),
    (
        "Testing for accessibility",
        "https://www.gov.uk/service-manual/helping-people-to-use-your-service/testing-for-accessibility",
    ),
    (
        "Making your service accessible",
        "https://www.gov.uk/service-manual/helping-people-to-use-your-service/"
        "making-your-service-accessible-an-introduction",
    ),
)

EXPLANATIONS = {
    "list": "A `<ul>` or `<ol>` has children other than `<li>`, `<script>` or `<template>`. "
    "Screen readers cannot announce the list items properly, so navigating the list gets confusing.",
    "listitem": "`<li>` elements sit outside a `<ul>` or `<ol>`. "
    "Screen readers cannot announce them as list items.",
    "select-name": "Dropdowns have no label, so screen reader users cannot tell what they are for.",
    "label": "Form inputs have no label, so users cannot tell what to enter.",
    "button-name": "Buttons have no accessible name, so screen reader users cannot tell what they do.",
    "link-name": "Links have no text or label, so users cannot tell where they lead.",
    "image-alt": "Images have no alternative text, so screen reader users miss their content.",
    "color-contrast": "Text contrast against its background is too low for users with low vision.",
    "heading-order": "Heading levels are skipped (for example H1 to H3), so screen reader users may miss content.",
    "aria-required-attr": "ARIA roles lack required attributes, so assistive technology misreads the element.",
    "duplicate-id": "Several elements share one ID, which breaks assistive technology navigation.",
    "form-field-multiple-labels": "Form fields have more than one label, so screen readers announce conflicting text.",
    "html-has-lang": "The page has no language attribute, so screen readers cannot pick a language.",
    "landmark-one-main": "The page has no main landmark, or more than one, so users cannot jump to the main content.",
    "page-has-heading-one": "The page has no H1, so screen reader users cannot tell what the page is for.",
    "region": "Some content sits outside any landmark, so screen reader users cannot navigate it efficiently.",
}

FIXES = {
    "list": "**Inspect the HTML structure:**\n\n"
    "```html\n"
    "<!-- Wrong: wrapper directly inside <ul> -->\n"
    '<ul>\n  <div class="wrapper">\n    <li>Item 1</li>\n  </div>\n</ul>\n\n'
    "<!-- Right: only <li> directly inside <ul> -->\n"
    '<ul>\n  <li><div class="wrapper">Item 1</div></li>\n</ul>\n'
    "```\n\n"
    "**Steps to fix:**\n"
    "1. Find the list using the selector below\n"
    "2. Check its direct children\n"
    "3. Move any wrappers inside the `<li>` elements\n"
    "4. If a component library renders the list, check its output",
    "listitem": "**Wrap list items in a list:**\n\n"
    "```html\n"
    "<!-- Wrong -->\n<div>\n  <li>Orphaned item</li>\n</div>\n\n"
    "<!-- Right -->\n<ul>\n  <li>Proper item</li>\n</ul>\n"
    "```\n\n"
    "**Steps to fix:**\n"
    "1. Find the orphaned `<li>` elements using the selectors below\n"
    "2. Wrap them in a `<ul>` or `<ol>`\n"
    "3. If they are not list items, make them `<div>` elements and style them with CSS",
    "select-name": "- Add a `<label>` that wraps or references the select\n"
    '- OR add `aria-label="Description"` to the select\n'
    '- OR add `aria-labelledby="heading-id"` pointing at existing text',
    "label": "- Wrap the input in a `<label>`\n"
    '- OR add a `<label for="input-id">` that references it\n'
    '- OR add `aria-label="Description"` to the input',
    "button-name": "- Put text inside the button: `<button>Submit</button>`\n"
    '- OR add `aria-label="Action description"`\n'
    '- OR add a `title="Action description"` attribute',
    "link-name": "- Put text inside the link\n"
    '- OR add `aria-label="Link description"`\n'
    "- OR give any image inside the link proper alt text",
    "image-alt": '- Add `alt="Description of image"`\n'
    '- OR, for decorative images, use `alt=""` with `role="presentation"`',
    "color-contrast": "- Increase the text size\n- OR darken the text\n- OR lighten the background\n"
    "- Target 4.5:1 for normal text and 3:1 for large text",
    "heading-order": "- Keep headings in sequence (H1, H2, H3)\n- Do not skip levels\n"
    "- Use CSS for visual size instead of heading levels",
    "duplicate-id": "- Find every element with the duplicated ID\n- Give each one a unique ID\n"
    "- Update `for` attributes and scripts that used the old ID",
    "form-field-multiple-labels": "- Remove the extra `<label>` elements\n"
    "- Keep exactly one label per input\n- Use `aria-describedby` for hint text",
    "html-has-lang": '- Add `lang="en"` to the `<html>` element\n'
    '- Use the right language code (for example `lang="cy"` for Welsh)',
    "landmark-one-main": "- Keep exactly one `<main>` element\n"
    '- OR put `role="main"` on the main content container\n- Remove duplicate main landmarks',
    "page-has-heading-one": "- Add an `<h1>` at the top of the main content\n"
    "- Make it describe the page purpose",
    "region": "- Wrap content in `<header>`, `<main>`, `<nav>` or `<footer>`\n"
    '- OR use `role="banner"`, `role="main"`, `role="navigation"` or `role="contentinfo"`',
}


def plain_english_explanation(rule_id: str) -> str:
    return EXPLANATIONS.get(
        rule_id, f"This violates WCAG 2.1 requirements for `{rule_id}`. Refer to documentation for details."
    )


def fix_instructions(rule_id: str) -> str:
    return FIXES.get(
        rule_id,
        "- Follow the reference link below for specific fix instructions\n"
        "- Consider consulting an accessibility specialist",
    )


def _instances(violation: dict[str, Any]) -> int:
    return len(violation.get("nodes") or [])


def _impact_icon(violation: dict[str, Any]) -> str:
    return "🔴" if violation.get("impact") == "critical" else "🟠"


def _affected_elements(nodes: list[dict[str, Any]]) -> list[str]:
    lines = ["**Affected elements:**", ""]
    for i, node in enumerate(nodes[:AFFECTED_ELEMENTS_SHOWN], start=1):
        target = node.get("target")
        selector = " ".join(str(t) for t in target) if isinstance(target, list) else str(target)
        html = node.get("html") or ""
        entry = f"{i}. Selector: `{selector}`"
        if html:
            ellipsis = "..." if len(html) > HTML_SNIPPET_CHARS else ""
            entry += f"\n   `{html[:HTML_SNIPPET_CHARS]}{ellipsis}`"
        lines.append(entry)
    if len(nodes) > AFFECTED_ELEMENTS_SHOWN:
        lines += ["", f"... and {len(nodes) - AFFECTED_ELEMENTS_SHOWN} more instance(s)"]
    return lines


def _issue_section(index: int, violation: dict[str, Any]) -> list[str]:
    rule_id = violation.get("id", "")
    lines = [
        f"### {_impact_icon(violation)} Issue {index}: {violation.get('help', rule_id)}",
        "",
        f"**Severity:** {(violation.get('impact') or 'unknown').upper()}",
        "",
        f"**WCAG Rule:** `{rule_id}`",
        "",
        f"**Problem:** {violation.get('description', '')}",
        "",
        f"**Instances:** {_instances(violation)}",
        "",
        "**What this means:**",
        "",
        plain_english_explanation(rule_id),
        "",
        "**How to fix:**",
        "",
        fix_instructions(rule_id),
        "",
    ]
    nodes = violation.get("nodes") or []
    if nodes:
        lines += _affected_elements(nodes)
    lines += ["", f"**Reference:** {violation.get('helpUrl', '')}", "", "---", ""]
    return lines


def build_stakeholder_report(
    label: str,
    url: str,
    timestamp: str,
    results: dict[str, Any],
    blocking: list[dict[str, Any]],
    options: Any,
) -> str:
    """
    Markdown summary of an axe scan for people who do not read axe JSON.

    Blocking violations get a section each with a plain-English explanation, fix
    instructions and up to three affected elements. The report closes with GDS
    service assessment guidance.
    """
    engine = results.get("testEngine") or {}
    include = getattr(options, "include", ()) or ()
    exclude = getattr(options, "exclude", ()) or ()

    lines = [
        f"# Accessibility Report: {label}",
        "",
        f"**Date:** {timestamp}",
        "",
        f"**Page:** {url}",
        "",
        f"**Tested with:** {engine.get('name') or 'axe-core'} {engine.get('version') or 'unknown'}",
        "",
        "**WCAG Level:** 2.1 Level A and AA (GDS Standard)",
        "",
        f"**Scope:** {', '.join(include) or DEFAULT_SCOPE}",
        "",
    ]
    if exclude:
        lines += [f"**Excluded:** {', '.join(exclude)}", ""]
    lines += ["---", ""]

    violations = results.get("violations") or []
    if not blocking:
        lines += ["## ✅ PASS - No Critical Violations", ""]
        if not violations:
            lines.append(
                "This page meets WCAG 2.1 Level A and AA requirements (GDS Service Standard Point 5)."
            )
        else:
            lines.append(
                "This page has no critical or serious violations. Minor/moderate issues may exist "
                "but do not block service assessment."
            )
        lines += [
            "",
            "- **Critical/Serious violations:** 0",
            f"- **All violations:** {len(violations)}",
            f"- **Passed checks:** {len(results.get('passes') or [])}",
            f"- **Not applicable:** {len(results.get('inapplicable') or [])}",
            "",
        ]
    else:
        total = sum(_instances(v) for v in blocking)
        by_severity: Counter[str] = Counter()
        for violation in blocking:
            by_severity[violation.get("impact") or "unknown"] += _instances(violation)

        lines += [
            f"## ❌ FAIL - {len(blocking)} Critical Issue(s) Found",
            "",
            f"This page has **{total} accessibility violation(s)** that must be fixed.",
            "",
            "### Severity Breakdown",
            "",
        ]
        if by_severity["critical"]:
            lines.append(f"- 🔴 **Critical:** {by_severity['critical']} instance(s) - Must fix immediately")
        if by_severity["serious"]:
            lines.append(f"- 🟠 **Serious:** {by_severity['serious']} instance(s) - Must fix before release")
        lines += ["", "---", "", "## Detailed Issues", ""]

        for index, violation in enumerate(blocking, start=1):
            lines += _issue_section(index, violation)

        lines += ["## 🎯 Action Items", ""]
        for index, violation in enumerate(blocking, start=1):
            lines.append(f"{index}. Fix **{_instances(violation)}** instance(s) of: {violation.get('help', '')}")
        lines.append("")

    lines += [
        "",
        "---",
        "",
        "## 📋 GDS Service Assessment Guidance",
        "",
        "**Service Standard Point 5:** Make sure everyone can use the service",
        "",
    ]
    if not blocking:
        lines += [
            "✅ This page meets the accessibility requirements for GDS assessment.",
            "",
            "**Next steps:**",
            "- Include this report in your Service Assessment evidence",
            "- Book a DAC audit to validate these automated findings",
            "- Test with real assistive technology users",
            "",
        ]
    else:
        lines += [
            "❌ This page does NOT meet GDS accessibility requirements.",
            "",
            "**Before Service Assessment:**",
            "1. Fix all critical and serious violations listed above",
            "2. Re-run automated tests to verify fixes",
            "3. Test with real assistive technology (screen readers, keyboard-only)",
            "4. Book a DAC audit once automated tests pass",
            "",
        ]

    lines.append("**References:**")
    lines += [f"- [{title}]({link})" for title, link in GUIDANCE_LINKS]
    lines.append("")
    return "\n".join(lines) + "\n"
