import pandas as pd
import pytest

from growth_tracker.models import Gender, Metric
from growth_tracker.who_reference import (SD_COLUMNS, WHOReference, get_who_reference,
                                          load_table, table_path)
from growth_tracker.zscore import z_score

from conftest import EXAMPLE_BOYS_HEIGHT, rows


def test_bundled_tables_cover_both_metrics_and_genders():
    reference = get_who_reference()
    for metric in Metric:
        for gender in Gender:
            assert reference.age_range(metric, gender) == (0.0, 60.0)


def test_bundled_boys_height_median_at_twelve_months():
    reference = get_who_reference()
    assert z_score(Metric.HEIGHT, Gender.MALE, 12, 75.7, reference=reference) == 0.0
    z = z_score(Metric.HEIGHT, Gender.MALE, 12, 73.4, reference=reference)
    assert z == pytest.approx(-1.0)


def test_bundled_curves_are_ordered_by_sd():
    reference = get_who_reference()
    for metric in Metric:
        for gender in Gender:
            df = reference.curve_set(metric, gender)
            values = df[list(SD_COLUMNS.values())].to_numpy()
            assert (values[:, 1:] > values[:, :-1]).all()


def test_curves_for_chart():
    curves = get_who_reference().curves(Metric.HEIGHT, Gender.FEMALE)
    assert [c.z for c in curves] == [-3, -2, -1, 0, 1, 2, 3]
    median = curves[3].to_dict()
    assert median["points"][0] == {"ageInMonths": 0.0, "value": 49.1}
    assert len(median["points"]) == 61


def test_empty_directory_has_no_curve_sets(tmp_path):
    reference = WHOReference.from_directory(str(tmp_path))
    assert reference.curve_set(Metric.HEIGHT, Gender.MALE) is None
    assert reference.curves(Metric.HEIGHT, Gender.MALE) == []
    assert z_score(Metric.HEIGHT, Gender.MALE, 12, 75.0, reference=reference) is None


def test_loads_xlsx_tables_with_stray_whitespace(tmp_path):
    path = table_path(str(tmp_path), Metric.WEIGHT, Gender.FEMALE, ".xlsx")
    (tmp_path / "wfa").mkdir()
    df = pd.DataFrame({
        " Month ": [0, 1],
        **{name: [3.0 + i, 4.0 + i] for i, name in enumerate(SD_COLUMNS.values())},
        "L": [0.38, 0.17],
    })
    df.to_excel(path, index=False, engine="openpyxl")

    table = load_table(path)
    assert list(table.columns) == ["Month", *SD_COLUMNS.values()]
    reference = WHOReference.from_directory(str(tmp_path))
    assert reference.age_range(Metric.WEIGHT, Gender.FEMALE) == (0.0, 1.0)


def test_table_without_age_column_is_rejected(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("Length,SD0\n45,2.4\n")
    with pytest.raises(ValueError):
        load_table(str(path))


def test_xlsx_table_takes_precedence_over_csv(tmp_path):
    (tmp_path / "lhfa").mkdir()
    table = pd.DataFrame(rows(EXAMPLE_BOYS_HEIGHT))
    table.to_excel(table_path(str(tmp_path), Metric.HEIGHT, Gender.MALE, ".xlsx"),
                   index=False, engine="openpyxl")
    shifted = table.assign(**{name: table[name] + 10 for name in SD_COLUMNS.values()})
    shifted.to_csv(table_path(str(tmp_path), Metric.HEIGHT, Gender.MALE, ".csv"), index=False)

    reference = WHOReference.from_directory(str(tmp_path))

    assert reference.curve_set(Metric.HEIGHT, Gender.MALE)["SD0"].tolist() == [49.9, 75.7, 87.8]
    z = z_score(Metric.HEIGHT, Gender.MALE, 12, 75.0, reference=reference)
    assert round(z, 2) == -0.24
