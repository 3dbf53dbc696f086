# Core infrastructure shared by the loop detector
