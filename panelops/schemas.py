from marshmallow import EXCLUDE, ValidationError, fields, pre_load, validate, validates_schema

from panelops import ma
from panelops.models.client import COUNTRIES
from panelops.models.cut import CUT_COUNTRIES
from panelops.models.payment import CURRENCIES, PAYMENT_METHODS
from panelops.models.subscription import LOCAL_CURRENCIES, SUBSCRIPTION_STATUSES
from panelops.models.panel import PANEL_STATES
from panelops.utils.ledger import LedgerCalculator


class Number(fields.Decimal):
    """Decimal on the way in, plain JSON number on the way out."""

    def _serialize(self, value, attr, obj, **kwargs):
        ret = super()._serialize(value, attr, obj, **kwargs)
        return float(ret) if ret is not None else None


class BaseSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    @pre_load
    def strip_strings(self, data, **kwargs):
        if not isinstance(data, dict):
            return data
        return {k: v.strip() if isinstance(v, str) else v for k, v in data.items()}


# ------------------ PANELS ------------------
class PanelSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.Str(required=True, validate=validate.Length(min=1, max=500))
    credentials_since = fields.Date(dump_only=True)
    purchase_date = fields.Date(required=True)
    expiration_date = fields.Date(required=True)
    total_capacity = fields.Int(required=True, validate=validate.Range(min=1, max=1000))
    service_name = fields.Str(load_default='', validate=validate.Length(max=255))
    state = fields.Str(dump_only=True, validate=validate.OneOf(PANEL_STATES))
    provider = fields.Str(allow_none=True, validate=validate.Length(max=255))
    monthly_cost = Number(load_default=0, validate=validate.Range(min=0))
    notes = fields.Str(allow_none=True, validate=validate.Length(max=2000))


class PanelCredentialSchema(BaseSchema):
    email = fields.Str()
    password = fields.Str()
    started_on = fields.Date()
    ended_on = fields.Date()


class PanelEventSchema(BaseSchema):
    event = fields.Str()
    event_date = fields.Date()
    related_panel_id = fields.Str(allow_none=True)


class RotateCredentialsSchema(BaseSchema):
    email = fields.Email(required=True, validate=validate.Length(max=255))
    password = fields.Str(required=True, validate=validate.Length(min=1, max=500))


class PanelDownSchema(BaseSchema):
    replacement = fields.Str(allow_none=True, load_default=None, validate=validate.OneOf(('existing', 'new')))
    replacement_panel_id = fields.Str(allow_none=True, load_default=None)
    new_panel = fields.Nested(PanelSchema, allow_none=True, load_default=None)

    @validates_schema
    def check_replacement(self, data, **kwargs):
        if data.get('replacement') == 'existing' and not data.get('replacement_panel_id'):
            raise ValidationError('Required when replacement is "existing"', 'replacement_panel_id')
        if data.get('replacement') == 'new' and not data.get('new_panel'):
            raise ValidationError('Required when replacement is "new"', 'new_panel')


# ------------------ CLIENTS / SERVICES ------------------
class ServiceSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    base_price = Number(required=True, validate=validate.Range(min=0))
    ref_price_mxn = Number(allow_none=True, validate=validate.Range(min=0))
    ref_price_cop = Number(allow_none=True, validate=validate.Range(min=0))


class SubscriptionSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    client_id = fields.Str(required=True, validate=validate.Length(min=1, max=36))
    service_id = fields.Str(required=True, validate=validate.Length(min=1, max=36))
    panel_id = fields.Str(allow_none=True, validate=validate.Length(max=36))
    status = fields.Str(dump_only=True, validate=validate.OneOf(SUBSCRIPTION_STATUSES))
    start_date = fields.Date(required=True)
    due_date = fields.Date(dump_only=True)
    cancelled_on = fields.Date(dump_only=True)
    price_usd = Number(required=True, validate=validate.Range(min=0))
    local_price = Number(allow_none=True, validate=validate.Range(min=0))
    local_currency = fields.Str(allow_none=True, validate=validate.OneOf(LOCAL_CURRENCIES))
    credential_email = fields.Str(allow_none=True, validate=validate.Length(max=255))
    credential_password = fields.Str(allow_none=True, validate=validate.Length(max=500))
    notes = fields.Str(allow_none=True, validate=validate.Length(max=2000))


class SubscriptionUpdateSchema(SubscriptionSchema):
    # editable here, computed on create
    due_date = fields.Date()


class ClientSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    name = fields.Str(required=True, validate=validate.Length(min=1, max=200))
    whatsapp = fields.Str(required=True, validate=validate.Length(min=1, max=30))
    country = fields.Str(allow_none=True, validate=validate.OneOf(COUNTRIES))
    notes = fields.Str(allow_none=True, validate=validate.Length(max=2000))
    local_currency = fields.Str(dump_only=True)


class ClientCreateSchema(ClientSchema):
    subscriptions = fields.List(
        fields.Nested(SubscriptionSchema(exclude=('client_id',))),
        load_default=list,
    )


# ------------------ PAYMENTS / CUTS ------------------
class PaymentSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    client_id = fields.Str(required=True, validate=validate.Length(min=1, max=36))
    project_id = fields.Str(allow_none=True, validate=validate.Length(max=36))
    cut_id = fields.Str(dump_only=True)
    amount_usd = Number(validate=validate.Range(min=0))
    original_amount = Number(allow_none=True, validate=validate.Range(min=0))
    currency = fields.Str(load_default='USD', validate=validate.OneOf(CURRENCIES))
    exchange_rate = Number(allow_none=True, validate=validate.Range(min=0, min_inclusive=False))
    method = fields.Str(required=True, validate=validate.OneOf(PAYMENT_METHODS))
    payment_date = fields.Date()
    reference = fields.Str(allow_none=True, validate=validate.Length(max=200))
    receipt_url = fields.Url(allow_none=True)

    @validates_schema
    def check_amounts(self, data, **kwargs):
        if kwargs.get('partial'):
            return
        if data.get('currency', 'USD') == 'USD':
            if data.get('amount_usd') is None:
                raise ValidationError('Required for USD payments', 'amount_usd')
            return
        if data.get('original_amount') is None:
            raise ValidationError('Required for local-currency payments', 'original_amount')
        if data.get('exchange_rate') is None:
            raise ValidationError('Required for local-currency payments', 'exchange_rate')


class CutSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    cut_date = fields.Date()
    country = fields.Str(required=True, validate=validate.OneOf(CUT_COUNTRIES))
    currency = fields.Str(dump_only=True)
    total_collected = Number(allow_none=True, validate=validate.Range(min=0))
    commission_pct = Number(allow_none=True, validate=validate.Range(min=0, max=100))
    total_after_commission = Number(dump_only=True)
    p2p_rate = Number(required=True, validate=validate.Range(min=0, min_inclusive=False))
    usdt_calculated = Number(dump_only=True)
    usdt_received = Number(required=True, validate=validate.Range(min=0))
    variance = fields.Method('get_variance', dump_only=True)
    payment_ids = fields.Method('get_payment_ids', dump_only=True)
    notes = fields.Str(allow_none=True, validate=validate.Length(max=2000))

    def get_variance(self, cut):
        return float(LedgerCalculator.cut_variance(cut))

    def get_payment_ids(self, cut):
        return [p.id for p in cut.payments]


class WeeklyCutRequestSchema(BaseSchema):
    start_date = fields.Date()
    end_date = fields.Date()
    notes = fields.Str(allow_none=True, validate=validate.Length(max=2000))

    @validates_schema
    def check_range(self, data, **kwargs):
        start, end = data.get('start_date'), data.get('end_date')
        if start and end and end < start:
            raise ValidationError('Must not be before start_date', 'end_date')


class WeeklyCutSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    start_date = fields.Date()
    end_date = fields.Date()
    total_income = Number()
    total_operator_commission = Number()
    total_owed_to_owners = Number()
    total_expenses = Number()
    net_profit = Number()
    project_details = fields.Raw()
    notes = fields.Str(allow_none=True)
    created_at = fields.DateTime(dump_only=True)


# ------------------ PROJECTS / GOALS / SETTINGS ------------------
class ProjectSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    name = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    owner = fields.Str(allow_none=True, validate=validate.Length(max=255))
    commission_pct = Number(load_default=0, validate=validate.Range(min=0, max=100))
    country = fields.Str(allow_none=True, validate=validate.OneOf(COUNTRIES))
    notes = fields.Str(allow_none=True, validate=validate.Length(max=2000))


class GoalSchema(BaseSchema):
    amount = Number(required=True, validate=validate.Range(min=0))


class TeamMemberSchema(BaseSchema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    role = fields.Str(load_default='', validate=validate.Length(max=100))
    whatsapp = fields.Str(load_default='', validate=validate.Length(max=30))


class SettingsSchema(BaseSchema):
    business_name = fields.Str(validate=validate.Length(min=1, max=100))
    business_subtitle = fields.Str(validate=validate.Length(max=200))
    cut_commission_pct = fields.Float(validate=validate.Range(min=0, max=100))
    commission_receiver = fields.Str(validate=validate.Length(max=100))
    active_currencies = fields.List(fields.Str(validate=validate.OneOf(CURRENCIES)))
    exchange_rates = fields.Dict(
        keys=fields.Str(validate=validate.OneOf(LOCAL_CURRENCIES)),
        values=fields.Float(validate=validate.Range(min=0, min_inclusive=False)),
    )
    team = fields.List(fields.Nested(TeamMemberSchema))


class LoginSchema(BaseSchema):
    email = fields.Email(required=True)
    password = fields.Str(required=True)


panel_schema = PanelSchema()
panels_schema = PanelSchema(many=True)
service_schema = ServiceSchema()
services_schema = ServiceSchema(many=True)
client_schema = ClientSchema()
clients_schema = ClientSchema(many=True)
subscription_schema = SubscriptionSchema()
subscriptions_schema = SubscriptionSchema(many=True)
payment_schema = PaymentSchema()
payments_schema = PaymentSchema(many=True)
cut_schema = CutSchema()
cuts_schema = CutSchema(many=True)
weekly_cut_schema = WeeklyCutSchema()
weekly_cuts_schema = WeeklyCutSchema(many=True)
project_schema = ProjectSchema()
projects_schema = ProjectSchema(many=True)
