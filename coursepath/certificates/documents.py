"""Certificate document template.

Certificates are rendered server-side as a standalone, printable HTML page
(landscape A4) and stored in the document store.
"""

from datetime import datetime
from html import escape


CERTIFICATE_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Certificate {code}</title>
  <style>
    @page {{ size: A4 landscape; margin: 0; }}
    body {{
      margin: 0;
      background-color: #FAFBFC;
      font-family: 'Inter', -apple-system, 'Segoe UI', Roboto, Arial, sans-serif;
      color: #1A1D23;
    }}
    .sheet {{
      box-sizing: border-box;
      width: 297mm;
      height: 210mm;
      margin: 0 auto;
      padding: 24mm;
      background-color: #FFFFFF;
      border: 10px solid #2D6E3E;
      text-align: center;
    }}
    .issuer {{
      font-size: 20px; font-weight: 700; color: #4A8F5B; letter-spacing: 2px;
    }}
    h1 {{ margin: 18mm 0 6mm; font-size: 44px; font-weight: 600; }}
    .lead {{ font-size: 18px; color: #4B5563; }}
    .learner {{ margin: 8mm 0; font-size: 34px; font-weight: 700; color: #2D6E3E; }}
    .course {{ font-size: 24px; font-weight: 600; }}
    .meta {{ margin-top: 16mm; font-size: 13px; color: #8E959E; line-height: 1.8; }}
    .code {{ font-family: 'Courier New', Courier, monospace; letter-spacing: 1px; }}
  </style>
</head>
<body>
  <div class="sheet">
    <div class="issuer">{issuer}</div>
    <h1>Certificate of Completion</h1>
    <p class="lead">This certifies that</p>
    <p class="learner">{learner}</p>
    <p class="lead">has successfully completed the course</p>
    <p class="course">{course_title}</p>
    <div class="meta">
      Completed on {completed_on}<br>
      Issued on {issued_on}<br>
      Verification code: <span class="code">{code}</span>
    </div>
  </div>
</body>
</html>
"""


def certificate_file_name(code: str) -> str:
    """Object name of a certificate document."""
    return f"certificate-{code}.html"


def render_certificate(
    learner: str,
    course_title: str,
    code: str,
    completed_at: datetime,
    issued_at: datetime,
    issuer: str,
) -> str:
    """Render the certificate document.

    Args:
        learner: Name printed on the certificate
        course_title: Completed course
        code: Public verification code
        completed_at: Course completion date
        issued_at: Certificate issue date
        issuer: Issuing organization

    Returns:
        Complete HTML document
    """
    return CERTIFICATE_TEMPLATE.format(
        issuer=escape(issuer),
        learner=escape(learner),
        course_title=escape(course_title),
        code=escape(code),
        completed_on=completed_at.strftime("%B %d, %Y"),
        issued_on=issued_at.strftime("%B %d, %Y"),
    )
