from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import ImmutableMultiDict
from wtforms import StringField
from wtforms.validators import DataRequired


def json_body():
    """The request's JSON object, or an empty dict for anything else."""
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


# Admin token login; posted as JSON by the gallery client
class AdminLoginForm(FlaskForm):
    class Meta:
        csrf = False

    token = StringField('Admin Token', validators=[DataRequired()])

    @classmethod
    def from_json(cls):
        return cls(formdata=ImmutableMultiDict(json_body()))
