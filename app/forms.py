from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField, MultipleFileField
from wtforms import (StringField, PasswordField, TextAreaField, SelectField, IntegerField, SubmitField,
                     BooleanField, DateTimeLocalField, FloatField, HiddenField)
from wtforms.validators import (DataRequired, Email, Length, EqualTo, NumberRange, Optional,
                                Regexp, ValidationError)

from app.services.storage import ALLOWED_IMAGE_EXTENSIONS

PRIORITY_CHOICES = [('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('urgent', 'Urgent')]
TIME_PATTERN = r'^([01]\d|2[0-3]):[0-5]\d$'
MODEL_TYPE_CHOICES = [
    ('recommendation', 'Recommendation'),
    ('prediction', 'Prediction'),
    ('classification', 'Classification'),
    ('nlp', 'NLP'),
    ('computer_vision', 'Computer vision'),
]


def _tag_list(value):
    return [t.strip() for t in (value or '').split(',') if t.strip()]


class RegistrationForm(FlaskForm):
    full_name = StringField('Full name', validators=[DataRequired(message='Enter your name'), Length(min=2, max=120, message='Use 2 to 120 characters')])
    email = StringField('Email', validators=[DataRequired(message='Enter your email'), Email(message='Enter a valid email address')])
    password = PasswordField('Password', validators=[DataRequired(message='Enter a password'), Length(min=8, message='Use at least 8 characters')])
    confirm_password = PasswordField('Confirm password', validators=[DataRequired(message='Confirm your password'), EqualTo('password', message='Passwords do not match')])
    role = SelectField('I am a', choices=[('student', 'Student'), ('teacher', 'Teacher')])
    submit = SubmitField('Create account')


class LoginForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired(message='Enter your email'), Email(message='Enter a valid email address')])
    password = PasswordField('Password', validators=[DataRequired(message='Enter your password')])
    remember_id = BooleanField('Remember my email')
    submit = SubmitField('Sign in')


class AnnouncementForm(FlaskForm):
    title = StringField('Title', validators=[DataRequired(message='Enter a title'), Length(max=200)])
    content = TextAreaField('Content', validators=[DataRequired(message='Enter the announcement content')])
    course_id = SelectField('Course', choices=[('', 'All my students')], default='')
    target_audience = SelectField('Audience', choices=[
        ('all_students', 'All students'),
        ('specific_course', 'Students of one course'),
        ('specific_students', 'Selected students'),
    ])
    specific_student_ids = StringField('Student IDs (comma separated)')
    priority = SelectField('Priority', choices=PRIORITY_CHOICES, default='medium')
    scheduled_at = DateTimeLocalField('Publish at', format='%Y-%m-%dT%H:%M', validators=[Optional()])
    expires_at = DateTimeLocalField('Expires at', format='%Y-%m-%dT%H:%M', validators=[Optional()])
    tags = StringField('Tags (comma separated)', validators=[Optional(), Length(max=200)])
    attachments = MultipleFileField('Attachments')
    allow_comments = BooleanField('Allow comments', default=True)
    send_email = BooleanField('Also send by email')
    send_push = BooleanField('Send push notification')
    submit = SubmitField('Save')

    def validate_course_id(self, course_id):
        if self.target_audience.data == 'specific_course' and not course_id.data:
            raise ValidationError('Choose the course this announcement targets.')

    def validate_specific_student_ids(self, field):
        if self.target_audience.data == 'specific_students' and not _tag_list(field.data):
            raise ValidationError('List at least one student.')

    def validate_expires_at(self, expires_at):
        if expires_at.data and self.scheduled_at.data and expires_at.data <= self.scheduled_at.data:
            raise ValidationError('Expiry must be after the publish time.')

    def to_payload(self):
        return {
            'title': self.title.data.strip(),
            'content': self.content.data.strip(),
            'courseId': self.course_id.data or None,
            'targetAudience': self.target_audience.data,
            'specificStudentIds': _tag_list(self.specific_student_ids.data),
            'priority': self.priority.data,
            'scheduledAt': self.scheduled_at.data.isoformat() if self.scheduled_at.data else None,
            'expiresAt': self.expires_at.data.isoformat() if self.expires_at.data else None,
            'tags': _tag_list(self.tags.data),
            'allowComments': self.allow_comments.data,
            'sendEmail': self.send_email.data,
            'sendPush': self.send_push.data,
        }


class NewConversationForm(FlaskForm):
    recipient_id = SelectField('To', choices=[], validators=[DataRequired(message='Choose a recipient')])
    subject = StringField('Subject', validators=[Optional(), Length(max=200)])
    content = TextAreaField('Message', validators=[DataRequired(message='Write a message')])
    submit = SubmitField('Send')


class MessageForm(FlaskForm):
    content = TextAreaField('Message', validators=[Length(max=5000)])
    attachments = MultipleFileField('Attach files')
    reply_to_id = HiddenField()
    submit = SubmitField('Send')

    def validate_content(self, content):
        has_files = any(f and f.filename for f in (self.attachments.data or []))
        if not (content.data or '').strip() and not has_files:
            raise ValidationError('Write a message or attach a file.')


class BulkMessageForm(FlaskForm):
    recipient_ids = StringField('Recipient IDs (comma separated)', validators=[DataRequired(message='Add at least one recipient')])
    course_id = StringField('Course', validators=[Optional()])
    subject = StringField('Subject', validators=[DataRequired(message='Enter a subject'), Length(max=200)])
    content = TextAreaField('Message', validators=[DataRequired(message='Write a message')])
    submit = SubmitField('Send to all')

    def recipients(self):
        return _tag_list(self.recipient_ids.data)


class SubmissionForm(FlaskForm):
    text_submission = TextAreaField('Your answer')
    files = MultipleFileField('Files')
    submit = SubmitField('Submit')

    def validate_text_submission(self, field):
        has_files = any(f and f.filename for f in (self.files.data or []))
        if not (field.data or '').strip() and not has_files:
            raise ValidationError('Write an answer or attach at least one file.')


class AIModelForm(FlaskForm):
    name = StringField('Name', validators=[DataRequired(message='Enter a model name'), Length(max=120)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=1000)])
    type = SelectField('Type', choices=MODEL_TYPE_CHOICES)
    version = StringField('Version', validators=[DataRequired(message='Enter a version'), Regexp(r'^\d+(\.\d+){0,2}$', message='Use a version like 1.2.0')])
    environment = SelectField('Environment', choices=[
        ('development', 'Development'), ('staging', 'Staging'), ('production', 'Production'),
    ])
    confidence_threshold = FloatField('Confidence threshold', default=0.7, validators=[Optional(), NumberRange(min=0, max=1)])
    auto_retrain = BooleanField('Retrain automatically')
    tags = StringField('Tags (comma separated)', validators=[Optional(), Length(max=200)])
    submit = SubmitField('Save model')

    def to_payload(self):
        return {
            'name': self.name.data.strip(),
            'description': (self.description.data or '').strip(),
            'type': self.type.data,
            'version': self.version.data.strip(),
            'deploymentInfo': {'environment': self.environment.data},
            'configuration': {
                'confidenceThreshold': self.confidence_threshold.data,
                'autoRetrain': self.auto_retrain.data,
            },
            'tags': _tag_list(self.tags.data),
        }


class TutoringSessionForm(FlaskForm):
    mode = SelectField('Mode', choices=[
        ('adaptive', 'Adaptive'),
        ('guided', 'Guided'),
        ('exploratory', 'Exploratory'),
        ('assessment', 'Assessment'),
    ], default='adaptive')
    topic = StringField('Topic', validators=[DataRequired(message='What do you want to study?'), Length(max=200)])
    course_id = StringField('Course', validators=[Optional()])
    difficulty = IntegerField('Difficulty (1-5)', default=2, validators=[Optional(), NumberRange(min=1, max=5)])
    submit = SubmitField('Start session')


class TutorQuestionForm(FlaskForm):
    question = TextAreaField('Ask the tutor', validators=[DataRequired(message='Type a question'), Length(max=2000)])
    submit = SubmitField('Ask')


class HintForm(FlaskForm):
    current_problem = TextAreaField('Problem', validators=[DataRequired(message='Describe the problem'), Length(max=2000)])
    previous_attempt = TextAreaField('What you tried', validators=[Optional(), Length(max=2000)])
    submit = SubmitField('Get a hint')


class EndSessionForm(FlaskForm):
    rating = SelectField('How helpful was this session?', choices=[(5, '5'), (4, '4'), (3, '3'), (2, '2'), (1, '1')], coerce=int)
    comment = TextAreaField('Comment', validators=[Optional(), Length(max=1000)])
    submit = SubmitField('End session')


class ProfileForm(FlaskForm):
    first_name = StringField('First name', validators=[Optional(), Length(max=80)])
    last_name = StringField('Last name', validators=[Optional(), Length(max=80)])
    display_name = StringField('Display name', validators=[Optional(), Length(max=80)])
    phone = StringField('Phone', validators=[Optional(), Length(max=20)])
    bio = TextAreaField('About me', validators=[Optional(), Length(max=500)])
    website = StringField('Website', validators=[Optional(), Length(max=255)])
    avatar = FileField('Avatar', validators=[FileAllowed(sorted(ALLOWED_IMAGE_EXTENSIONS), 'Images only')])
    submit = SubmitField('Save profile')

    def validate_phone(self, phone):
        if phone.data:
            cleaned = ''.join(filter(str.isdigit, phone.data))
            if len(cleaned) < 9:
                raise ValidationError('Enter a valid phone number.')

    def to_payload(self):
        return {
            'firstName': self.first_name.data,
            'lastName': self.last_name.data,
            'displayName': self.display_name.data,
            'phone': self.phone.data,
            'bio': self.bio.data,
            'website': self.website.data,
        }


class PasswordChangeForm(FlaskForm):
    current_password = PasswordField('Current password', validators=[DataRequired(message='Enter your current password')])
    new_password = PasswordField('New password', validators=[DataRequired(message='Enter a new password'), Length(min=8, message='Use at least 8 characters')])
    confirm_password = PasswordField('Confirm new password', validators=[DataRequired(message='Confirm the new password'), EqualTo('new_password', message='Passwords do not match')])
    submit = SubmitField('Change password')


class NotificationSettingsForm(FlaskForm):
    email_notifications = BooleanField('Email')
    push_notifications = BooleanField('Push')
    sms_notifications = BooleanField('SMS')
    in_app_notifications = BooleanField('In-app')
    course_updates = BooleanField('Course updates')
    assignment_reminders = BooleanField('Assignment reminders')
    grade_notifications = BooleanField('Grades')
    message_notifications = BooleanField('Messages')
    achievement_notifications = BooleanField('Achievements')
    system_notifications = BooleanField('System')
    marketing_notifications = BooleanField('Offers and news')
    quiet_hours_enabled = BooleanField('Quiet hours')
    quiet_hours_start = StringField('From', validators=[Optional(), Regexp(TIME_PATTERN, message='Use HH:MM')])
    quiet_hours_end = StringField('Until', validators=[Optional(), Regexp(TIME_PATTERN, message='Use HH:MM')])
    frequency = SelectField('Delivery', choices=[('instant', 'Instantly'), ('daily', 'Daily digest'), ('weekly', 'Weekly digest')])
    submit = SubmitField('Save notification settings')


class PrivacySettingsForm(FlaskForm):
    profile_visibility = SelectField('Profile visibility', choices=[('public', 'Public'), ('friends', 'Classmates only'), ('private', 'Private')])
    show_progress = BooleanField('Show my progress')
    show_achievements = BooleanField('Show my achievements')
    allow_messages = BooleanField('Allow messages from other users')
    show_online_status = BooleanField('Show when I am online')
    submit = SubmitField('Save privacy settings')


class PreferencesForm(FlaskForm):
    theme = SelectField('Theme', choices=[('system', 'System'), ('light', 'Light'), ('dark', 'Dark')])
    language = SelectField('Language', choices=[('en', 'English'), ('vi', 'Tiếng Việt'), ('ko', '한국어')])
    timezone = StringField('Time zone', validators=[Optional(), Length(max=64)])
    playback_speed = SelectField('Playback speed', choices=[('0.75', '0.75x'), ('1.0', '1x'), ('1.25', '1.25x'), ('1.5', '1.5x'), ('2.0', '2x')], default='1.0')
    captions = BooleanField('Captions on')
    auto_advance = BooleanField('Play next lesson automatically')
    study_session_length = IntegerField('Study session length (minutes)', default=45, validators=[Optional(), NumberRange(min=10, max=240)])
    submit = SubmitField('Save preferences')


class CancelSubscriptionForm(FlaskForm):
    cancel_at_period_end = BooleanField('Keep access until the end of the current period', default=True)
    submit = SubmitField('Cancel subscription')


class ChangePlanForm(FlaskForm):
    plan = SelectField('Plan', choices=[('monthly', 'Monthly'), ('yearly', 'Yearly')])
    submit = SubmitField('Change plan')
