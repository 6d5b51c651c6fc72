"""HTML fragments for client notifications.

Every ``{{ ... }}`` expression in these templates passes through
`escape_html` via the environment's ``finalize`` hook, so values that came
from the client brief or from an LLM can never inject markup. Templates only
contain static markup around those expressions.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from jinja2 import DictLoader, Environment, StrictUndefined

_HTML_ENTITIES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#039;",
    }
)


def escape_html(value: Any) -> str:
    """Escape ``& < > " '`` to entities; None renders as an empty string."""
    if value is None:
        return ""
    return str(value).translate(_HTML_ENTITIES)


_TEMPLATES = {
    "workflow_summary.html": """\
<div class="workflow-summary">
  <h3>Generated Workflow</h3>
  <table>
    <tr><td><strong>Name:</strong></td><td>{{ name }}</td></tr>
    <tr><td><strong>Nodes:</strong></td><td>{{ node_count }}</td></tr>
    <tr><td><strong>Connections:</strong></td><td>{{ connection_count }}</td></tr>
    <tr><td><strong>Source:</strong></td><td>{{ source }}</td></tr>
    <tr><td><strong>Generated:</strong></td><td>{{ generated_at }}</td></tr>
  </table>
</div>""",
    "qa_report.html": """\
<div class="qa-report">
  <h3>QA Validation Report</h3>
  <table class="qa-summary">
    <tr>
      <td><strong>Status:</strong></td>
      <td class="{{ 'valid' if valid else 'invalid' }}">{{ '✓ Valid' if valid else '✗ Issues Found' }}</td>
    </tr>
    <tr><td><strong>Confidence:</strong></td><td>{{ confidence_pct }}%</td></tr>
    <tr><td><strong>Issues:</strong></td><td>{{ issues | length }}</td></tr>
    <tr><td><strong>Source:</strong></td><td>{{ source }}</td></tr>
  </table>
{% if issues %}
  <div class="qa-issues"><h4>Issues Found:</h4><ul>
{% for issue in issues %}
    <li>{{ issue }}</li>
{% endfor %}
  </ul></div>
{% endif %}
{% if rule_results %}
  <div class="qa-rules"><h4>Structural Checks:</h4><table>
{% for rule in rule_results %}
    <tr><td>{{ rule.rule_id }}</td><td>{{ rule.severity }}</td><td class="{{ 'pass' if rule.passed else 'fail' }}">{{ 'PASS' if rule.passed else 'FAIL' }}</td></tr>
{% endfor %}
  </table></div>
{% endif %}
  <div class="qa-summary-text"><p><strong>Summary:</strong> {{ summary }}</p></div>
</div>""",
    "qa_notice.html": """\
<div class="{{ css_class }}">
  <p><strong>{{ title }}</strong></p>
{% if detail is not none %}
  <p>{{ detail_label }}{{ detail }}</p>
{% endif %}
{% if preview is not none %}
  <pre class="qa-raw-response">{{ preview }}</pre>
{% endif %}
</div>""",
    "error_report.html": """\
<div class="error-report">
  <h2>Workflow Generation Error</h2>
  <table class="error-details">
    <tr><td><strong>Stage:</strong></td><td>{{ stage }}</td></tr>
    <tr><td><strong>Time:</strong></td><td>{{ timestamp }}</td></tr>
    <tr><td><strong>Source:</strong></td><td>{{ source }}</td></tr>
    <tr><td><strong>Error Code:</strong></td><td>{{ error_code }}</td></tr>
  </table>
  <div class="error-message">
    <h3>Error Message:</h3>
    <p>{{ message }}</p>
  </div>
{% if errors %}
  <div class="error-list"><h3>Detailed Errors:</h3><ul>
{% for err in errors %}
    <li><strong>[{{ err.severity | upper }}]</strong> {{ err.code }}: {{ err.message }}</li>
{% endfor %}
  </ul></div>
{% endif %}
  <div class="error-support">
    <h3>Next Steps:</h3>
    <ul>
      <li>Review your workflow requirements and try again</li>
      <li>Ensure all required fields are properly filled</li>
      <li>Contact support if the issue persists</li>
    </ul>
  </div>
</div>""",
}

_env = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=False,
    finalize=escape_html,
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=False,
)

# Rendered without the template engine so it cannot fail.
FALLBACK_ERROR_HTML = """\
<div class="error-report critical">
  <h2>Critical Error</h2>
  <p>An unexpected error occurred while preparing your error report.</p>
  <p>Please contact support immediately.</p>
</div>"""


def render_workflow_summary(
    *,
    name: str,
    node_count: int,
    connection_count: int,
    source: str,
    generated_at: str,
) -> str:
    return _env.get_template("workflow_summary.html").render(
        name=name,
        node_count=node_count,
        connection_count=connection_count,
        source=source,
        generated_at=generated_at,
    )


def render_qa_report(
    *,
    valid: bool,
    confidence: float,
    issues: Sequence[str],
    summary: Any,
    source: str,
    rule_results: Iterable[Any] = (),
) -> str:
    """Render the validator verdict; confidence is shown as a percentage."""
    return _env.get_template("qa_report.html").render(
        valid=valid,
        confidence_pct=f"{confidence * 100:.1f}",
        issues=list(issues),
        summary=summary,
        source=source,
        rule_results=list(rule_results),
    )


def render_qa_notice(
    title: str,
    detail: Any = None,
    *,
    detail_label: str = "",
    preview: str | None = None,
    css_class: str = "qa-error",
) -> str:
    """Render a short QA failure or warning fragment."""
    return _env.get_template("qa_notice.html").render(
        title=title,
        detail=detail,
        detail_label=detail_label,
        preview=preview,
        css_class=css_class,
    )


def render_error_report(
    *,
    stage: str,
    timestamp: str,
    source: str,
    error_code: str,
    message: str,
    errors: Sequence[Mapping[str, Any]] = (),
) -> str:
    return _env.get_template("error_report.html").render(
        stage=stage,
        timestamp=timestamp,
        source=source,
        error_code=error_code,
        message=message,
        errors=list(errors),
    )
