from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, SelectField, BooleanField
from wtforms.validators import DataRequired, Length


class LoginForm(FlaskForm):
    """Login form"""
    username = StringField('Username', validators=[DataRequired(), Length(min=3, max=80)])
    password = PasswordField('Password', validators=[DataRequired()])
    remember_me = BooleanField('Remember Me')


class ExportForm(FlaskForm):
    """Export format chooser shown on the document preview"""
    format = SelectField('Format',
                         choices=[('pdf', 'PDF document'), ('image', 'PNG image')],
                         default='pdf',
                         validators=[DataRequired()])
