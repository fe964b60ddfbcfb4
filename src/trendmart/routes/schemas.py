from marshmallow import EXCLUDE, Schema, fields, validate

from trendmart.models.order import OrderStatus, ReturnStatus


class PageQuerySchema(Schema):
    """skip/take paging shared by every list endpoint"""

    class Meta:
        unknown = EXCLUDE

    skip = fields.Int(load_default=0, validate=validate.Range(min=0))
    take = fields.Int(load_default=None, validate=validate.Range(min=1))


class OrderListQuerySchema(PageQuerySchema):
    status = fields.Str(load_default=None, validate=validate.OneOf([s.value for s in OrderStatus]))


class ReturnListQuerySchema(PageQuerySchema):
    status = fields.Str(load_default=None, validate=validate.OneOf([s.value for s in ReturnStatus]))


class ProductQuerySchema(Schema):
    class Meta:
        unknown = EXCLUDE

    include_archived = fields.Bool(load_default=False)
