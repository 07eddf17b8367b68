class ListResponseMixin:
    """Wrap a service ``list`` call in the paged list envelope.

    ``limit`` and ``offset`` are always the last two positional arguments of
    ``list``.
    """

    def list_response(self, db, *args, **kwargs) -> dict:
        items = self.list(db, *args, **kwargs)
        if "limit" in kwargs:
            limit, offset = kwargs["limit"], kwargs["offset"]
        else:
            limit, offset = args[-2], args[-1]
        return {"items": items, "count": len(items), "limit": limit, "offset": offset}
