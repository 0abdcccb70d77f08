from flask import Blueprint, render_template, redirect, url_for, flash, request, abort

from app.decorators import role_required
from app import lms_api as api
from app.errors import flash_api_error
from app.forms import CancelSubscriptionForm, ChangePlanForm
from app.listing import ALL, SUBSCRIPTION_STATUSES, filter_subscriptions, subscription_stats
from app.routes.auth import redirect_back

bp = Blueprint('subscriptions', __name__, url_prefix='/subscriptions')


@bp.route('/')
@role_required('student')
def index():
    status = request.args.get('status') or ALL
    try:
        subscriptions = api.get_subscriptions()
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not load your subscriptions.')
        subscriptions = []

    return render_template('subscriptions/index.html',
        subscriptions=filter_subscriptions(subscriptions, status),
        status=status,
        statuses=SUBSCRIPTION_STATUSES,
        stats=subscription_stats(subscriptions),
    )


@bp.route('/<subscription_id>')
@role_required('student')
def detail(subscription_id):
    try:
        subscription = api.get_subscription(subscription_id)
    except api.ApiError as exc:
        if exc.is_not_found:
            abort(404)
        raise
    return render_template('subscriptions/detail.html',
        subscription=subscription,
        cancel_form=CancelSubscriptionForm(),
        plan_form=ChangePlanForm(plan='yearly' if subscription.plan == 'monthly' else 'monthly'),
    )


@bp.route('/<subscription_id>/pause', methods=['POST'])
@role_required('student')
def pause(subscription_id):
    try:
        api.pause_subscription(subscription_id)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not pause the subscription.')
    else:
        flash('Subscription paused.', 'success')
    return redirect_back('subscriptions.detail', subscription_id=subscription_id)


@bp.route('/<subscription_id>/resume', methods=['POST'])
@role_required('student')
def resume(subscription_id):
    try:
        api.resume_subscription(subscription_id)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not resume the subscription.')
    else:
        flash('Subscription resumed.', 'success')
    return redirect_back('subscriptions.detail', subscription_id=subscription_id)


@bp.route('/<subscription_id>/cancel', methods=['POST'])
@role_required('student')
def cancel(subscription_id):
    form = CancelSubscriptionForm()
    at_period_end = form.cancel_at_period_end.data if form.validate_on_submit() else True
    try:
        api.cancel_subscription(subscription_id, cancel_at_period_end=at_period_end)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not cancel the subscription.')
    else:
        if at_period_end:
            flash('Your subscription will end at the close of the current period.', 'success')
        else:
            flash('Subscription cancelled.', 'success')
    return redirect(url_for('subscriptions.detail', subscription_id=subscription_id))


@bp.route('/<subscription_id>/change-plan', methods=['POST'])
@role_required('student')
def change_plan(subscription_id):
    form = ChangePlanForm()
    if not form.validate_on_submit():
        flash('Choose a plan.', 'danger')
        return redirect(url_for('subscriptions.detail', subscription_id=subscription_id))
    try:
        api.change_subscription_plan(subscription_id, form.plan.data)
    except api.ApiError as exc:
        flash_api_error(exc, 'Could not change the plan.')
    else:
        flash(f'Plan changed to {form.plan.data}.', 'success')
    return redirect(url_for('subscriptions.detail', subscription_id=subscription_id))
