from flask import Blueprint, render_template, redirect, url_for, flash, request, abort

from app.decorators import role_required
from app import lms_api as api
from app.errors import flash_api_error
from app.forms import AIModelForm, MODEL_TYPE_CHOICES
from app.listing import ListQuery, filter_models, model_overview, paginate
from app.routes.auth import redirect_back

bp = Blueprint('ai_management', __name__, url_prefix='/admin/ai-models')

MODEL_STATUSES = ('active', 'deployed', 'training', 'inactive', 'failed')
ACTION_MESSAGES = {
    'deploy': 'Deployment started.',
    'stop': 'Model stopped.',
    'train': 'Training started.',
}


def _get_or_404(model_id):
    try:
        return api.get_model(model_id)
    except api.ApiError as exc:
        if exc.is_not_found:
            abort(404)
        raise


@bp.route('/')
@role_required('admin')
def index():
    query = ListQuery.from_args(request.args)
    try:
        models = api.get_models()
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not load AI models.')
        models = []

    filtered = filter_models(models, query)
    return render_template('ai_management/index.html',
        page=paginate(filtered, query.page, query.per_page),
        query=query,
        overview=model_overview(models),
        statuses=MODEL_STATUSES,
        types=MODEL_TYPE_CHOICES,
    )


@bp.route('/<model_id>')
@role_required('admin')
def detail(model_id):
    model = _get_or_404(model_id)
    try:
        metrics = api.get_model_metrics(model_id)
    except api.ApiError:
        metrics = {}
    try:
        versions = api.get_model_versions(model_id)
    except api.ApiError:
        versions = []
    return render_template('ai_management/detail.html', model=model, metrics=metrics, versions=versions)


@bp.route('/new', methods=['GET', 'POST'])
@role_required('admin')
def create():
    form = AIModelForm()
    if form.validate_on_submit():
        try:
            model = api.create_model(form.to_payload())
        except api.ApiError as exc:
            flash_api_error(exc, 'Could not create the model.')
        else:
            flash(f'Model "{model.name or form.name.data}" created.', 'success')
            if model.id:
                return redirect(url_for('ai_management.detail', model_id=model.id))
            return redirect(url_for('ai_management.index'))
    return render_template('ai_management/form.html', form=form, model=None)


@bp.route('/<model_id>/edit', methods=['GET', 'POST'])
@role_required('admin')
def edit(model_id):
    model = _get_or_404(model_id)
    if request.method == 'GET':
        form = AIModelForm(data={
            'name': model.name,
            'description': model.description,
            'type': model.type,
            'version': model.version,
            'environment': model.environment,
            'confidence_threshold': model.confidence_threshold,
            'auto_retrain': model.auto_retrain,
            'tags': ', '.join(model.tags),
        })
    else:
        form = AIModelForm()

    if form.validate_on_submit():
        try:
            api.update_model(model_id, form.to_payload())
        except api.ApiError as exc:
            flash_api_error(exc, 'Could not update the model.')
        else:
            flash('Model updated.', 'success')
            return redirect(url_for('ai_management.detail', model_id=model_id))
    return render_template('ai_management/form.html', form=form, model=model)


@bp.route('/<model_id>/action/<action>', methods=['POST'])
@role_required('admin')
def run_action(model_id, action):
    if action not in api.MODEL_ACTIONS:
        abort(404)
    try:
        api.model_action(model_id, action)
    except api.ApiError as exc:
        flash_api_error(exc, f'Could not {action} the model.')
    else:
        flash(ACTION_MESSAGES[action], 'success')
    return redirect_back('ai_management.detail', model_id=model_id)


@bp.route('/<model_id>/delete', methods=['POST'])
@role_required('admin')
def delete(model_id):
    try:
        api.delete_model(model_id)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not delete the model.')
        return redirect_back('ai_management.detail', model_id=model_id)
    flash('Model deleted.', 'success')
    return redirect(url_for('ai_management.index'))


@bp.route('/<model_id>/versions/<version_id>/deploy', methods=['POST'])
@role_required('admin')
def deploy_version(model_id, version_id):
    try:
        api.deploy_model_version(version_id)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not deploy that version.')
    else:
        flash('Version deployment started.', 'success')
    return redirect(url_for('ai_management.detail', model_id=model_id))
