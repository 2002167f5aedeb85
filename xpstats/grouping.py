import polars as pl


def group_agg(data: pl.DataFrame | pl.LazyFrame,
              groups: list,
              fields: dict) -> pl.DataFrame:
    """
    Summarize a data frame by any number of grouping variables

    Records are partitioned by the composite key formed from `groups`. Each
    partition is reduced to a single row using the aggregate expressions in
    `fields`. Results are sorted by the grouping variables.

    Parameters
    ----------
    data : pl.DataFrame | pl.LazyFrame
        A data frame
    groups : list
        Grouping variables. If empty, `data` is reduced to a single row.
    fields : dict
        Output column names mapped to aggregate polars expressions

    Returns
    ----------
    pl.DataFrame
        A data frame with one row per unique combination of `groups` that
        appears in `data`, containing the grouping variables followed by
        `fields`.
    """
    if isinstance(data, pl.LazyFrame):
        data = data.collect()

    groups = list(groups)

    if len(groups) == 0:
        return data.select(**fields)

    parts = data.partition_by(groups, maintain_order=True)

    if len(parts) == 0:
        # no records. keep the output schema.
        return (data.head(0).
                select(pl.col(groups).first(), **fields).
                clear())

    return (pl.concat([part.select(pl.col(groups).first(), **fields)
                       for part in parts],
                      how='vertical').
            sort(groups))
