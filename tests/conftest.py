"""
Shared fixtures for the TCRS client tests.

WEEK_PAGE_HTML is a trimmed week page with the same shapes the server
renders: a project dropdown, activity script calls, two filled rows and
an empty row.
"""

import pytest

from tcrs.config import Config

BASE_URL = "https://tcrs.example.com"


WEEK_PAGE_HTML = """
<html>
<head>
<script>
var act = new Array();
act.append('101','1. Design','false','u1','0');
act.append('101','  Sub Task <<1.1>>','true','u9','0');
act.append('202','Support','true','u20','50');
act.append('303','Orphan','true','u30','0');
</script>
</head>
<body>
<form name="weekform">
<select name="project_list">
  <option value="--">-- select project --</option>
  <option value="101">Alpha</option>
  <option selected value="202" class="proj">Beta</option>
</select>
<table class="timecard_table">
  <tr class="header"><th>Project</th><th>Activity</th><th>Mon</th><th>Tue</th></tr>
  <tr>
    <td><select name="project0">
      <option value="--">--</option>
      <option value="101" selected>Alpha</option>
      <option value="202">Beta</option>
    </select></td>
    <td><select name="activity0">
      <option value="xx">--</option>
      <option value="true$u9$101$0" selected>Sub Task</option>
    </select><input type="hidden" name="actprogress0" value="10"></td>
    <td><input name="record0_0" value="8.0"><input type="hidden" name="note0_0" value="kickoff"><input type="hidden" name="progress0_0" value="5"></td>
    <td><input name="record0_1" value="8.0"><input type="hidden" name="note0_1" value=""><input type="hidden" name="progress0_1" value="0"></td>
    <td><input name="record0_2" value="8.0"></td>
    <td><input name="record0_3" value="8.0"></td>
    <td><input name="record0_4" value="8.0"></td>
    <td><input name="record0_5" value="0"></td>
    <td><input name="record0_6" value="0"></td>
  </tr>
  <tr>
    <td><select name="project1">
      <option value="--">--</option>
      <option value="202" selected>Beta</option>
    </select></td>
    <td><select name="activity1">
      <option value="true$u20$202$0" selected>Support</option>
    </select></td>
    <td><input name="record1_0" value=""></td>
    <td><input name="record1_1" value="1.5"></td>
    <td><input name="record1_2" value="n/a"></td>
    <td><input name="record1_3" value=""></td>
    <td><input name="record1_4" value=""></td>
    <td><input name="record1_5" value=""></td>
    <td><input name="record1_6" value=""></td>
  </tr>
  <tr>
    <td><select name="project2">
      <option value="--" selected>--</option>
      <option value="101">Alpha</option>
    </select></td>
    <td><input name="record2_0" value=""></td>
  </tr>
</table>
</form>
</body>
</html>
"""


@pytest.fixture
def config(tmp_path) -> Config:
    """Configuration pointing at the test server with a temporary cache."""
    return Config(base_url=BASE_URL, cache_dir=tmp_path / "cache")


@pytest.fixture
def week_page_html() -> str:
    return WEEK_PAGE_HTML
