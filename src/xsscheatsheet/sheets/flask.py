"""XSS risk patterns for Flask applications and their Jinja2 templates."""

from __future__ import annotations

from typing import Any

_FLASK_SECURITY = "https://flask.palletsprojects.com/en/latest/web-security/#cross-site-scripting-xss"
_FLASK_AUTOESCAPING = "https://flask.palletsprojects.com/en/latest/templating/#controlling-autoescaping"
_FLASK_JINJA_SETUP = "https://flask.palletsprojects.com/en/latest/templating/#jinja-setup"
_JINJA_AUTOESCAPING = "https://jinja.palletsprojects.com/en/latest/api/#autoescaping"
_MARKUPSAFE = "https://markupsafe.palletsprojects.com/en/latest/"
_OWASP_XSS = "https://cheatsheetseries.owasp.org/cheatsheets/Cross_Site_Scripting_Prevention_Cheat_Sheet.html"

FLASK_SHEET: dict[str, Any] = {
    "framework": "flask",
    "title": "XSS prevention cheat sheet for Flask",
    "intro": (
        "Flask renders HTML through Jinja2, which HTML-escapes interpolated "
        "values in templates ending in .html, .htm, .xml and .xhtml. Most "
        "cross-site scripting bugs in Flask applications come from code that "
        "steps outside that protection: HTML assembled in Python, templates "
        "that turn escaping off, or values placed where HTML escaping is not "
        "enough. Each entry below names one such construct, shows what it "
        "looks like, and links the Semgrep rule that detects it."
    ),
    "ruleset": "p/minusworld.flask-xss",
    "sections": [
        # ------------------------------------------------------------------
        # Server code: HTML built in Python
        # ------------------------------------------------------------------
        {
            "number": "1",
            "title": "Server code: generating HTML outside of templates",
            "patterns": [
                {
                    "id": "1.A",
                    "title": "Returning a formatted string",
                    "description": (
                        "A route that returns a string is sent to the browser "
                        "as text/html. Interpolating request data into that "
                        "string with format(), % or an f-string bypasses "
                        "Jinja2 autoescaping entirely."
                    ),
                    "example": (
                        '@app.route("/greet")\n'
                        "def greet():\n"
                        '    name = request.args.get("name")\n'
                        '    return "<h1>Hello, {}!</h1>".format(name)\n'
                    ),
                    "example_language": "python",
                    "references": [_FLASK_SECURITY, _OWASP_XSS],
                    "mitigation": {
                        "description": (
                            "Do not return formatted strings from route "
                            "functions. Render a template with "
                            "render_template() so the value is escaped."
                        ),
                        "alternative": (
                            "If a template is not an option, escape the value "
                            "with markupsafe.escape() before formatting."
                        ),
                    },
                    "external_rule_ref": "python.flask.security.audit.directly-returned-format-string",
                },
                {
                    "id": "1.B",
                    "title": "Using Markup()",
                    "description": (
                        "Markup() marks a string as safe HTML. Jinja2 will "
                        "never escape it again, so any user data inside the "
                        "wrapped string reaches the page verbatim."
                    ),
                    "example": (
                        "from markupsafe import Markup\n"
                        "\n"
                        "def render_comment(comment):\n"
                        '    return Markup("<p>%s</p>" % comment.body)\n'
                    ),
                    "example_language": "python",
                    "references": [_MARKUPSAFE, _FLASK_SECURITY],
                    "mitigation": {
                        "description": (
                            "Avoid wrapping strings that contain user data in "
                            "Markup(). Keep markup in templates and pass data "
                            "to them unmarked."
                        ),
                        "alternative": (
                            "Build the string with Markup(\"<p>%s</p>\") % value, "
                            "which escapes value, or call Markup.escape() on "
                            "each value first."
                        ),
                    },
                    "external_rule_ref": "python.flask.security.xss.audit.explicit-unescape-with-markup",
                },
                {
                    "id": "1.C",
                    "title": "Returning make_response() with unknown content",
                    "description": (
                        "make_response() defaults to a text/html content "
                        "type. Passing it a body that includes request data "
                        "returns that data to the browser as HTML."
                    ),
                    "example": (
                        '@app.route("/echo")\n'
                        "def echo():\n"
                        '    body = request.args.get("q", "")\n'
                        "    return make_response(body)\n"
                    ),
                    "example_language": "python",
                    "references": [
                        "https://flask.palletsprojects.com/en/latest/api/#flask.make_response",
                        _OWASP_XSS,
                    ],
                    "mitigation": {
                        "description": (
                            "Only pass make_response() the output of "
                            "render_template() or a value that has been "
                            "escaped."
                        ),
                        "alternative": (
                            "Set an explicit non-HTML mimetype, for example "
                            "Response(body, mimetype=\"text/plain\"), or return "
                            "jsonify() for structured data."
                        ),
                    },
                    "external_rule_ref": "python.flask.security.audit.xss.make-response-with-unknown-content",
                },
            ],
        },
        # ------------------------------------------------------------------
        # Server code: template machinery used unsafely
        # ------------------------------------------------------------------
        {
            "number": "2",
            "title": "Server code: bypassing templates",
            "patterns": [
                {
                    "id": "2.A",
                    "title": "Using render_template_string()",
                    "description": (
                        "render_template_string() compiles its argument as a "
                        "template. When user data becomes part of the "
                        "template source rather than a context variable, it "
                        "is emitted unescaped and can also lead to "
                        "server-side template injection."
                    ),
                    "example": (
                        '@app.route("/hello")\n'
                        "def hello():\n"
                        '    name = request.args.get("name")\n'
                        '    return render_template_string("<h1>Hello " + name + "</h1>")\n'
                    ),
                    "example_language": "python",
                    "references": [
                        "https://flask.palletsprojects.com/en/latest/api/#flask.render_template_string",
                        _FLASK_SECURITY,
                    ],
                    "mitigation": {
                        "description": (
                            "Use render_template() with a template file ending "
                            "in .html."
                        ),
                        "alternative": (
                            "If an inline template is unavoidable, keep it a "
                            "constant and pass user data as a keyword "
                            "argument: render_template_string(\"<h1>{{ name }}</h1>\", name=name)."
                        ),
                    },
                    "external_rule_ref": "python.flask.security.audit.render-template-string",
                },
                {
                    "id": "2.B",
                    "title": "Using Jinja2 directly",
                    "description": (
                        "A jinja2.Environment or jinja2.Template created by "
                        "hand does not inherit Flask's autoescaping "
                        "configuration. Jinja2 on its own does not escape "
                        "anything unless told to."
                    ),
                    "example": (
                        "import jinja2\n"
                        "\n"
                        "def render_profile(user):\n"
                        '    template = jinja2.Template("<p>{{ bio }}</p>")\n'
                        "    return template.render(bio=user.bio)\n"
                    ),
                    "example_language": "python",
                    "references": [_FLASK_JINJA_SETUP, _JINJA_AUTOESCAPING],
                    "mitigation": {
                        "description": (
                            "Render through Flask with render_template() so "
                            "the application's Jinja2 environment is used."
                        ),
                        "alternative": (
                            "If a separate environment is required, construct "
                            "it with autoescape=jinja2.select_autoescape()."
                        ),
                    },
                    "external_rule_ref": "python.flask.security.xss.audit.direct-use-of-jinja2",
                },
                {
                    "id": "2.C",
                    "title": "Disabling autoescape in a Jinja2 environment",
                    "description": (
                        "Creating a jinja2.Environment with autoescape=False, "
                        "or leaving the argument out, turns escaping off for "
                        "every template that environment renders."
                    ),
                    "example": (
                        "from jinja2 import Environment, FileSystemLoader\n"
                        "\n"
                        'env = Environment(loader=FileSystemLoader("templates"), autoescape=False)\n'
                    ),
                    "example_language": "python",
                    "references": [_JINJA_AUTOESCAPING, _FLASK_AUTOESCAPING],
                    "mitigation": {
                        "description": (
                            "Always pass autoescape=True or "
                            "autoescape=select_autoescape() when creating a "
                            "Jinja2 environment."
                        ),
                    },
                    "external_rule_ref": "python.jinja2.security.audit.autoescape-disabled",
                },
            ],
        },
        # ------------------------------------------------------------------
        # Templates: escaping switched off
        # ------------------------------------------------------------------
        {
            "number": "3",
            "title": "Templates: explicitly disabling escaping",
            "patterns": [
                {
                    "id": "3.A",
                    "title": "Using the |safe filter",
                    "description": (
                        "The safe filter marks a value as already-escaped "
                        "HTML. If the value contains user data it is "
                        "rendered as markup."
                    ),
                    "example": "<div class=\"bio\">{{ user.bio | safe }}</div>\n",
                    "example_language": "jinja2",
                    "references": [
                        "https://jinja.palletsprojects.com/en/latest/templates/#jinja-filters.safe",
                        _FLASK_AUTOESCAPING,
                    ],
                    "mitigation": {
                        "description": (
                            "Remove the safe filter and let the value be "
                            "escaped."
                        ),
                        "alternative": (
                            "If rich text is required, sanitize it on the "
                            "server with an allowlist HTML sanitizer such as "
                            "nh3 or bleach before marking it safe."
                        ),
                    },
                    "external_rule_ref": "python.flask.security.xss.audit.template-unescaped-with-safe",
                },
                {
                    "id": "3.B",
                    "title": "Using {% autoescape false %}",
                    "description": (
                        "An autoescape block set to false disables escaping "
                        "for everything inside it, including variables added "
                        "to the block later."
                    ),
                    "example": (
                        "{% autoescape false %}\n"
                        "  <p>{{ comment.body }}</p>\n"
                        "{% endautoescape %}\n"
                    ),
                    "example_language": "jinja2",
                    "references": [
                        "https://jinja.palletsprojects.com/en/latest/templates/#autoescape-overrides",
                        _FLASK_AUTOESCAPING,
                    ],
                    "mitigation": {
                        "description": (
                            "Remove the autoescape false block from the "
                            "template."
                        ),
                        "alternative": (
                            "Mark individual trusted values with Markup() on "
                            "the server instead of disabling escaping for a "
                            "region of the template."
                        ),
                    },
                    "external_rule_ref": "python.flask.security.xss.audit.template-autoescape-off",
                },
                {
                    "id": "3.C",
                    "title": "Rendering templates without a .html extension",
                    "description": (
                        "Flask enables autoescaping based on the template "
                        "file extension. A template named page.txt or "
                        "page.jinja is rendered with escaping off even if it "
                        "produces HTML."
                    ),
                    "example": (
                        '@app.route("/page")\n'
                        "def page():\n"
                        '    return render_template("page.jinja", title=request.args["title"])\n'
                    ),
                    "example_language": "python",
                    "references": [_FLASK_AUTOESCAPING, _FLASK_JINJA_SETUP],
                    "mitigation": {
                        "description": (
                            "Give templates that produce HTML a .html, .htm, "
                            ".xml or .xhtml extension."
                        ),
                        "alternative": (
                            "Override Flask.select_jinja_autoescape() to "
                            "return True for the extensions your project uses."
                        ),
                    },
                    "external_rule_ref": "python.flask.security.unescaped-template-extension",
                },
            ],
        },
        # ------------------------------------------------------------------
        # Templates: HTML escaping is not enough
        # ------------------------------------------------------------------
        {
            "number": "4",
            "title": "Templates: variables in dangerous locations",
            "patterns": [
                {
                    "id": "4.A",
                    "title": "Unquoted variable in an HTML attribute",
                    "description": (
                        "HTML escaping does not escape spaces. A variable in "
                        "an unquoted attribute value can end the attribute "
                        "and add new ones such as onmouseover."
                    ),
                    "example": "<div class={{ classes }}>...</div>\n",
                    "example_language": "jinja2",
                    "references": [_OWASP_XSS, _FLASK_SECURITY],
                    "mitigation": {
                        "description": (
                            "Always quote attribute values: "
                            "class=\"{{ classes }}\"."
                        ),
                    },
                    "external_rule_ref": "python.flask.security.xss.audit.template-unquoted-attribute-var",
                },
                {
                    "id": "4.B",
                    "title": "Variable in an href attribute",
                    "description": (
                        "Escaping does not stop a javascript: URL. A link "
                        "whose href comes from user data runs script when "
                        "clicked."
                    ),
                    "example": "<a href=\"{{ user.website }}\">Website</a>\n",
                    "example_language": "jinja2",
                    "references": [_OWASP_XSS, _FLASK_SECURITY],
                    "mitigation": {
                        "description": (
                            "Validate URLs on the server and only allow the "
                            "http and https schemes."
                        ),
                        "alternative": (
                            "Build links with url_for() and a fixed prefix "
                            "instead of emitting the raw value."
                        ),
                    },
                    "external_rule_ref": "python.flask.security.xss.audit.template-href-var",
                },
                {
                    "id": "4.C",
                    "title": "Variable in a <script> block",
                    "description": (
                        "Inside a script element the browser parses "
                        "JavaScript, where HTML escaping has no effect. A "
                        "quote or </script> in the value breaks out of the "
                        "intended string."
                    ),
                    "example": (
                        "<script>\n"
                        "  var username = \"{{ username }}\";\n"
                        "</script>\n"
                    ),
                    "example_language": "jinja2",
                    "references": [
                        "https://jinja.palletsprojects.com/en/latest/templates/#jinja-filters.tojson",
                        _OWASP_XSS,
                    ],
                    "mitigation": {
                        "description": (
                            "Serialize values with the tojson filter, which "
                            "produces a JavaScript literal that is safe to "
                            "embed: var username = {{ username | tojson }};"
                        ),
                        "alternative": (
                            "Put the value in a data- attribute and read it "
                            "from the script with element.dataset."
                        ),
                    },
                    "external_rule_ref": "generic.html-templates.security.var-in-script-tag",
                },
            ],
        },
    ],
}
